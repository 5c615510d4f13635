from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from meetingtracker.services.llm import LLMProvider, LLMProviderError, OllamaProvider, OpenAIProvider

MAX_TOPICS = 7


class ExtractionError(RuntimeError):
    pass


@dataclass(frozen=True)
class ActionItemCandidate:
    title: str
    description: Optional[str] = None
    assignee: Optional[str] = None
    due_date: Optional[str] = None


def _clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def normalize_candidates(raw_items: list[Any]) -> list[ActionItemCandidate]:
    """Drop entries without a usable title and trim every string field."""
    candidates: list[ActionItemCandidate] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        title = _clean_text(raw.get("title"))
        if not title:
            continue
        candidates.append(
            ActionItemCandidate(
                title=title,
                description=_clean_text(raw.get("description")),
                assignee=_clean_text(raw.get("assignee")),
                due_date=_clean_text(raw.get("due_date", raw.get("dueDate"))),
            )
        )
    return candidates


class ExtractionService:
    """Action item, summary and topic extraction through the configured LLM.

    Reads the provider selection from the ``llm`` section of the app config:
    - llm.provider: "openai" (default) or "ollama"
    - llm.model, llm.api_key, llm.base_url
    """

    def __init__(self, config: dict, provider: Optional[LLMProvider] = None) -> None:
        self._config = config
        self._provider = provider
        self._logger = logging.getLogger("meetingtracker.extraction")

    def _settings(self) -> dict:
        return self._config.get("llm", {})

    def _get_provider(self) -> LLMProvider:
        if self._provider is not None:
            return self._provider

        settings = self._settings()
        provider_name = (settings.get("provider") or "openai").lower()
        model_id = settings.get("model") or ""
        base_url = settings.get("base_url") or ""

        if provider_name == "ollama":
            self._provider = OllamaProvider(
                base_url=base_url or "http://127.0.0.1:11434",
                model=model_id or "llama3.1",
            )
            return self._provider

        if provider_name == "openai":
            api_key = settings.get("api_key", "")
            if not api_key:
                raise LLMProviderError(
                    "Missing OpenAI API key. Set llm.api_key in config.json or OPENAI_API_KEY."
                )
            self._provider = OpenAIProvider(
                api_key=api_key,
                model=model_id or "gpt-4o",
                base_url=base_url or "https://api.openai.com",
            )
            return self._provider

        raise LLMProviderError(f"Unknown provider: {provider_name}")

    def extract_action_items(self, transcript: str) -> list[ActionItemCandidate]:
        if not transcript or not transcript.strip():
            return []
        try:
            provider = self._get_provider()
            self._logger.info(
                "Action item extraction using provider=%s", provider.__class__.__name__
            )
            raw_items = provider.extract_action_items(transcript)
        except LLMProviderError as exc:
            raise ExtractionError(f"Failed to extract action items: {exc}") from exc
        candidates = normalize_candidates(raw_items)
        self._logger.info(
            "Action item extraction: raw=%s kept=%s", len(raw_items), len(candidates)
        )
        return candidates

    def summarize(self, transcript: str) -> str:
        if not transcript or not transcript.strip():
            return ""
        try:
            return self._get_provider().summarize(transcript)
        except LLMProviderError as exc:
            raise ExtractionError(f"Failed to summarize meeting: {exc}") from exc

    def extract_key_topics(self, transcript: str) -> list[str]:
        if not transcript or not transcript.strip():
            return []
        try:
            raw_topics = self._get_provider().extract_key_topics(transcript)
        except LLMProviderError as exc:
            raise ExtractionError(f"Failed to extract key topics: {exc}") from exc
        topics = [t for t in (_clean_text(raw) for raw in raw_topics) if t]
        return topics[:MAX_TOPICS]

    def check_connection(self) -> bool:
        try:
            return bool(self._get_provider().prompt("Hello"))
        except Exception as exc:
            self._logger.warning("LLM connection check failed: %s", exc)
            return False
