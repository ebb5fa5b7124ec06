from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from consciente.models import Contact, ContactStatus
from consciente.services import contact_service
from consciente.services.contact_service import fetch_display_name, phone_from_chat_id, resolve_contact
from fakes import FakeGateway

CHAT_ID = "5215550001111@c.us"


class TestPhoneFromChatId:
    def test_strips_suffix(self):
        assert phone_from_chat_id("5215551234567@c.us") == "5215551234567"

    def test_plain_number(self):
        assert phone_from_chat_id("5215551234567") == "5215551234567"

    def test_empty(self):
        assert phone_from_chat_id("") == ""


class TestFetchDisplayName:
    @pytest.mark.asyncio
    async def test_prefers_pushname(self):
        gateway = FakeGateway(contacts={CHAT_ID: {"pushname": "Lucía", "name": "Lucia M"}})
        assert await fetch_display_name(gateway, CHAT_ID) == "Lucía"

    @pytest.mark.asyncio
    async def test_falls_back_to_name(self):
        gateway = FakeGateway(contacts={CHAT_ID: {"name": "Lucia M"}})
        assert await fetch_display_name(gateway, CHAT_ID) == "Lucia M"

    @pytest.mark.asyncio
    async def test_unknown_contact_uses_placeholder(self):
        assert await fetch_display_name(FakeGateway(), CHAT_ID) == "Desconocido"

    @pytest.mark.asyncio
    async def test_gateway_error_uses_placeholder(self):
        gateway = FakeGateway(fail_contact=True)
        assert await fetch_display_name(gateway, CHAT_ID, "Sin nombre") == "Sin nombre"


class TestResolveContact:
    @pytest.mark.asyncio
    async def test_creates_prospect(self, db_session):
        gateway = FakeGateway(contacts={CHAT_ID: {"pushname": "Lucía"}})
        contact = await resolve_contact(db_session, gateway, CHAT_ID)

        assert contact.phone_number == "5215550001111"
        assert contact.name == "Lucía"
        assert contact.status == ContactStatus.PROSPECT.value
        assert contact.first_contact_at is not None
        assert contact.last_contact_at is not None

    @pytest.mark.asyncio
    async def test_existing_contact_is_reused(self, db_session):
        gateway = FakeGateway()
        first = await resolve_contact(db_session, gateway, CHAT_ID)
        second = await resolve_contact(db_session, gateway, CHAT_ID)

        assert first.id == second.id
        assert db_session.query(Contact).count() == 1

    @pytest.mark.asyncio
    async def test_gateway_failure_still_creates_contact(self, db_session):
        contact = await resolve_contact(db_session, FakeGateway(fail_contact=True), CHAT_ID)
        assert contact.name == "Desconocido"

    @pytest.mark.asyncio
    async def test_concurrent_insert_is_refetched(self, db_session, session_factory):
        # Another worker inserts the same phone number between our lookup and insert.
        other = session_factory()
        other.add(
            Contact(
                phone_number="5215550001111",
                name="Otro",
                status=ContactStatus.LEAD.value,
                lead_score=10,
                interested_in=[],
                first_contact_at=datetime.now(timezone.utc),
                created_at=datetime.now(timezone.utc),
            )
        )
        other.commit()
        other.close()

        real_lookup = contact_service.get_contact_by_phone
        calls = []

        def stale_then_real(db, phone_number):
            calls.append(phone_number)
            if len(calls) == 1:
                return None
            return real_lookup(db, phone_number)

        with patch.object(contact_service, "get_contact_by_phone", side_effect=stale_then_real):
            contact = await resolve_contact(db_session, FakeGateway(), CHAT_ID)

        assert contact.name == "Otro"
        assert contact.status == ContactStatus.LEAD.value
        assert db_session.query(Contact).count() == 1

    @pytest.mark.asyncio
    async def test_invalid_chat_id(self, db_session):
        with pytest.raises(ValueError):
            await resolve_contact(db_session, FakeGateway(), "@c.us")
