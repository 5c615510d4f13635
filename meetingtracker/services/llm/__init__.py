from meetingtracker.services.llm.base import BaseLLMProvider, LLMProvider, LLMProviderError
from meetingtracker.services.llm.ollama_provider import OllamaProvider
from meetingtracker.services.llm.openai_provider import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProvider",
    "LLMProviderError",
    "OllamaProvider",
    "OpenAIProvider",
]
