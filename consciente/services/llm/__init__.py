from consciente.services.llm.base import LLMProvider, LLMResponse, ToolCall
from consciente.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMProvider", "LLMResponse", "ToolCall", "OpenAIProvider"]
