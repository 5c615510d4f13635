from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import requests


class LLMProviderError(RuntimeError):
    pass


class LLMProvider(ABC):
    @abstractmethod
    def extract_action_items(self, transcript: str) -> list[Any]:
        raise NotImplementedError

    @abstractmethod
    def summarize(self, transcript: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def extract_key_topics(self, transcript: str) -> list[Any]:
        raise NotImplementedError

    @abstractmethod
    def prompt(self, prompt: str) -> str:
        """Send a raw prompt and return the response text."""
        raise NotImplementedError


class BaseLLMProvider(LLMProvider):
    """Base implementation with shared prompts, JSON parsing, and response handling.

    Subclasses only need to implement _call_api() for their specific API client.
    """

    PROMPTS = {
        "action_items": (
            "Analyze the following meeting transcript and extract all action items, "
            "tasks, follow-ups, and commitments mentioned. For each action item provide:\n"
            "1. title: a clear, concise description of the action (required)\n"
            "2. description: additional context or details if available (optional)\n"
            "3. assignee: the person responsible if mentioned by name (optional)\n"
            "4. due_date: the deadline as an ISO date string if one is mentioned (optional)\n\n"
            "Return a JSON object with an \"action_items\" array. If no action items "
            "are found, return an empty array.\n\n"
            "Example:\n"
            '{{"action_items": [{{"title": "Follow up with marketing on campaign results", '
            '"description": "Review Q3 campaign metrics", "assignee": "Sarah", '
            '"due_date": "2024-01-15"}}]}}\n\n'
            "Meeting transcript:\n{transcript}"
        ),
        "action_items_system": (
            "You are an expert at analyzing meeting transcripts and identifying action "
            "items. Always respond with valid JSON in the specified format."
        ),
        "summarize": (
            "Provide a concise summary of the following meeting transcript. Focus on "
            "key topics discussed, important decisions made, and main outcomes and next "
            "steps. Keep it professional and factual.\n\n"
            "Meeting transcript:\n{transcript}"
        ),
        "summarize_system": (
            "You are an expert at summarizing meeting content. Provide clear, concise "
            "summaries that capture the essential information."
        ),
        "key_topics": (
            "Analyze the following meeting transcript and extract the main topics or "
            "themes discussed. Return a JSON object with a \"topics\" array containing "
            "3-7 key topics as short strings.\n\n"
            'Example: {{"topics": ["Budget Planning", "Project Timeline"]}}\n\n'
            "Meeting transcript:\n{transcript}"
        ),
        "key_topics_system": (
            "You are an expert at identifying the key topics of a meeting. Always "
            "respond with valid JSON in the specified format."
        ),
    }

    # Name used in error messages ("Failed to reach OpenAI", "Ollama error: 500").
    service_name = "LLM"

    def __init__(self, logger_name: str = "meetingtracker.llm") -> None:
        self._logger = logging.getLogger(logger_name)

    def _post_json(
        self, url: str, body: dict, timeout: int, headers: dict | None = None
    ) -> dict:
        """POST ``body`` as JSON and return the decoded JSON reply.

        Transport failures, non-200 statuses and non-JSON bodies all raise
        LLMProviderError; the status code is kept in the message.
        """
        started = time.perf_counter()
        try:
            response = requests.post(url, headers=headers, json=body, timeout=timeout)
        except requests.RequestException as exc:
            raise LLMProviderError(f"Failed to reach {self.service_name}: {exc}") from exc

        elapsed = time.perf_counter() - started
        if response.status_code != 200:
            self._logger.warning(
                "%s call failed: status=%s elapsed=%.2fs",
                self.service_name,
                response.status_code,
                elapsed,
            )
            raise LLMProviderError(f"{self.service_name} error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMProviderError(f"{self.service_name} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise LLMProviderError(f"{self.service_name} returned an unexpected body")
        self._logger.debug("%s call ok: elapsed=%.2fs", self.service_name, elapsed)
        return data

    @abstractmethod
    def _call_api(
        self,
        prompt: str,
        temperature: float = 0.3,
        timeout: int = 120,
        system_prompt: str | None = None,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> str:
        """Make an API call and return the raw response text.

        Args:
            prompt: The user prompt to send
            temperature: Sampling temperature (0.0-1.0)
            timeout: Request timeout in seconds
            system_prompt: Optional system prompt
            json_mode: Request JSON-formatted response if supported
            max_tokens: Optional cap on the completion length

        Returns:
            The response text content
        """
        raise NotImplementedError

    @staticmethod
    def _strip_markdown_code_blocks(text: str) -> str:
        """Remove markdown code block wrappers from text."""
        text = text.strip()
        if not text.startswith("```"):
            return text

        lines = text.split("\n")
        json_lines = []
        for line in lines:
            if line.startswith("```"):
                continue
            json_lines.append(line)
        return "\n".join(json_lines).strip()

    def _parse_json(self, content: str, task: str) -> Any:
        text = self._strip_markdown_code_blocks(content)
        if not text:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            self._logger.warning("Non-JSON response for %s: %s", task, text[:300])
            raise LLMProviderError(f"Non-JSON response for {task}: {text[:200]}") from exc

    @staticmethod
    def _unwrap_json_list(parsed: Any, keys: tuple[str, ...], logger: logging.Logger | None = None) -> list:
        """Extract a list from a JSON response that may be wrapped in a dict.

        Models in JSON mode usually return {"key": [...]}, sometimes a bare
        array. Anything else is treated as "nothing found".
        """
        if isinstance(parsed, list):
            return parsed

        if isinstance(parsed, dict):
            for key in keys:
                value = parsed.get(key)
                if isinstance(value, list):
                    return value

            # If only one key and its value is a list, use that
            if len(parsed) == 1:
                value = next(iter(parsed.values()))
                if isinstance(value, list):
                    return value

            if logger:
                logger.warning(
                    "JSON response has unexpected structure; treating as empty. Keys: %s",
                    list(parsed.keys()),
                )
            return []

        if logger:
            logger.warning("Expected list or dict, got %s; treating as empty", type(parsed).__name__)
        return []

    def extract_action_items(self, transcript: str) -> list[Any]:
        prompt = self.PROMPTS["action_items"].format(transcript=transcript)
        content = self._call_api(
            prompt,
            temperature=0.3,
            timeout=120,
            system_prompt=self.PROMPTS["action_items_system"],
            json_mode=True,
            max_tokens=2000,
        )
        parsed = self._parse_json(content, "action item extraction")
        return self._unwrap_json_list(parsed, ("action_items", "actionItems", "items"), self._logger)

    def summarize(self, transcript: str) -> str:
        prompt = self.PROMPTS["summarize"].format(transcript=transcript)
        return self._call_api(
            prompt,
            temperature=0.3,
            timeout=120,
            system_prompt=self.PROMPTS["summarize_system"],
            max_tokens=500,
        ).strip()

    def extract_key_topics(self, transcript: str) -> list[Any]:
        prompt = self.PROMPTS["key_topics"].format(transcript=transcript)
        content = self._call_api(
            prompt,
            temperature=0.3,
            timeout=60,
            system_prompt=self.PROMPTS["key_topics_system"],
            json_mode=True,
            max_tokens=300,
        )
        parsed = self._parse_json(content, "key topic extraction")
        return self._unwrap_json_list(parsed, ("topics", "key_topics"), self._logger)

    def prompt(self, prompt_text: str) -> str:
        """Send a raw prompt and return the response text."""
        return self._call_api(prompt_text, temperature=0.3, timeout=30, max_tokens=5)
