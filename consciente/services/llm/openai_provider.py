from typing import List, Optional

import httpx

from consciente.errors import LLMError
from consciente.logging_config import get_logger
from consciente.services.llm.base import LLMProvider, LLMResponse, ToolCall

logger = get_logger("llm.openai")


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider with tool calling."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-4.1-nano",
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = f"{base_url.rstrip('/')}/chat/completions"
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def generate(
        self,
        messages: List[dict],
        tools: Optional[List[dict]] = None,
        tool_choice: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 800,
    ) -> LLMResponse:
        """Generate response from OpenAI."""

        model = model or self.default_model
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = tool_choice or "auto"
        logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}, tools={len(tools or [])}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.TimeoutException as e:
            logger.error(f"OpenAI timeout after {self.timeout_seconds}s")
            raise LLMError("OpenAI request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"OpenAI transport error: {e}")
            raise LLMError(f"OpenAI unreachable: {e}") from e

        logger.debug(f"OpenAI response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"OpenAI error: {response.text[:500]}")
            raise LLMError(
                f"OpenAI API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError("OpenAI returned a non-JSON body") from e

        content = ""
        tool_calls: list[ToolCall] = []
        if data.get("choices"):
            message = data["choices"][0].get("message") or {}
            content = message.get("content") or ""
            for index, call in enumerate(message.get("tool_calls") or []):
                function = call.get("function") or {}
                tool_calls.append(
                    ToolCall(
                        id=call.get("id") or f"call_{index}",
                        name=function.get("name") or "",
                        arguments=function.get("arguments") or "{}",
                    )
                )
        logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}, tool_calls={len(tool_calls)}")

        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=data.get("usage"),
            tool_calls=tool_calls,
        )
