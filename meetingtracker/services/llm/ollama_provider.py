from __future__ import annotations

from meetingtracker.services.llm.base import BaseLLMProvider

DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"


class OllamaProvider(BaseLLMProvider):
    """Runs prompts against a local (or LAN) Ollama server.

    Ollama's generate endpoint has no system role, so the system prompt is
    prepended to the user prompt.
    """

    service_name = "Ollama"

    def __init__(self, base_url: str, model: str) -> None:
        super().__init__(logger_name="meetingtracker.llm.ollama")
        self._endpoint = f"{(base_url or DEFAULT_OLLAMA_URL).rstrip('/')}/api/generate"
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
        options: dict = {"temperature": temperature}
        if max_tokens:
            options["num_predict"] = max_tokens

        body = {
            "model": self._model,
            "prompt": f"{system_prompt}\n\n{prompt}" if system_prompt else prompt,
            "stream": False,
            "options": options,
        }
        if json_mode:
            body["format"] = "json"

        data = self._post_json(self._endpoint, body, timeout)
        return str(data.get("response") or "").strip()
