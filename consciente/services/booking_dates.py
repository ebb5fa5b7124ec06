from datetime import datetime, timezone, tzinfo

from consciente.errors import InvalidArgumentError


def parse_booking_datetime(value: str, tz: tzinfo) -> datetime:
    """
    Parse a model-supplied booking date into an aware UTC datetime.

    Accepts full ISO timestamps ("2025-07-26T10:00:00", "...Z", "...-06:00")
    and bare dates ("2025-07-26"). Values without an offset are wall-clock
    time in the business timezone; a bare date means local midnight.
    """
    raw = (value or "").strip()
    if not raw:
        raise InvalidArgumentError("La fecha de la reserva está vacía")

    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise InvalidArgumentError(f"Fecha inválida: {value!r}. Usa formato ISO (YYYY-MM-DD o YYYY-MM-DDTHH:MM)") from None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


def to_business_time(value: datetime, tz: tzinfo) -> datetime:
    # SQLite hands back naive values; everything is stored as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz)


def format_business_time(value: datetime, tz: tzinfo) -> str:
    local = to_business_time(value, tz)
    if local.hour == 0 and local.minute == 0:
        return local.strftime("%d/%m/%Y")
    return local.strftime("%d/%m/%Y %H:%M")
