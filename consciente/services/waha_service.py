from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from consciente.errors import GatewayError
from consciente.logging_config import get_logger

logger = get_logger("waha_service")


class ChatGateway(ABC):
    """Outbound side of the WhatsApp gateway."""

    @abstractmethod
    async def send_text(self, chat_id: str, text: str) -> dict:
        pass

    @abstractmethod
    async def start_typing(self, chat_id: str) -> None:
        pass

    @abstractmethod
    async def stop_typing(self, chat_id: str) -> None:
        pass

    @abstractmethod
    async def get_contact(self, chat_id: str) -> Optional[dict]:
        """Profile info for a chat, or None if the gateway does not know it."""
        pass


class WahaClient(ChatGateway):
    """Client for the WhatsApp HTTP API (WAHA)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: str = "default",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict:
        return {"X-Api-Key": self.api_key, "Content-Type": "application/json"}

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        allow_not_found: bool = False,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), json=json, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"WAHA timeout: {method} {endpoint}")
            raise GatewayError(f"WAHA timeout on {endpoint}") from e
        except httpx.HTTPError as e:
            logger.error(f"WAHA transport error: {method} {endpoint}: {e}")
            raise GatewayError(f"WAHA unreachable: {e}") from e

        if allow_not_found and response.status_code == 404:
            return None
        if response.status_code >= 300:
            logger.error(f"WAHA error: status={response.status_code}, endpoint={endpoint}, body={response.text[:200]}")
            raise GatewayError(
                f"WAHA API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    async def send_text(self, chat_id: str, text: str) -> dict:
        data = {"chatId": chat_id, "text": text, "session": self.session}
        result = await self._request("POST", "/api/sendText", json=data)
        logger.info(f"WAHA message sent: chat_id={chat_id}, length={len(text)}")
        return result if isinstance(result, dict) else {"result": result}

    async def start_typing(self, chat_id: str) -> None:
        await self._request("POST", "/api/startTyping", json={"chatId": chat_id, "session": self.session})

    async def stop_typing(self, chat_id: str) -> None:
        await self._request("POST", "/api/stopTyping", json={"chatId": chat_id, "session": self.session})

    async def get_contact(self, chat_id: str) -> Optional[dict]:
        result = await self._request(
            "GET",
            "/api/contacts",
            params={"contactId": chat_id, "session": self.session},
            allow_not_found=True,
        )
        if not result or not isinstance(result, dict):
            return None
        return result
