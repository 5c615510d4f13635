from __future__ import annotations

from meetingtracker.services.llm.base import BaseLLMProvider, LLMProviderError

DEFAULT_OPENAI_URL = "https://api.openai.com"


class OpenAIProvider(BaseLLMProvider):
    """Chat-completions client for OpenAI and OpenAI-compatible servers."""

    service_name = "OpenAI"

    def __init__(self, api_key: str, model: str, base_url: str = DEFAULT_OPENAI_URL) -> None:
        super().__init__(logger_name="meetingtracker.llm.openai")
        self._endpoint = f"{(base_url or DEFAULT_OPENAI_URL).rstrip('/')}/v1/chat/completions"
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._model = model

    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.3,
        timeout: int = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> str:
        body: dict = {
            "model": self._model,
            "temperature": temperature,
            "messages": [
                {"role": "system", "content": system_prompt or "You are a helpful assistant."},
                {"role": "user", "content": prompt},
            ],
        }
        if max_tokens:
            body["max_tokens"] = max_tokens
        if json_mode:
            # Forces a single JSON object; list payloads come back wrapped in a key.
            body["response_format"] = {"type": "json_object"}

        data = self._post_json(self._endpoint, body, timeout, headers=self._headers)
        try:
            message = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMProviderError("OpenAI response missing choices") from exc
        return str(message.get("content") or "").strip()
