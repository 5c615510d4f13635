from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass

import requests

from meetingtracker.services.transcription.base import (
    TranscriptionError,
    TranscriptionProvider,
    TranscriptionResult,
)


@dataclass(frozen=True)
class OpenAIWhisperConfig:
    api_key: str
    model: str = "whisper-1"
    base_url: str = "https://api.openai.com"
    language: str = "en"
    timeout: int = 600


class OpenAIWhisperProvider(TranscriptionProvider):
    """Speech-to-text through the hosted OpenAI audio transcription endpoint."""

    def __init__(self, config: OpenAIWhisperConfig) -> None:
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._logger = logging.getLogger("meetingtracker.transcription.openai")

    def transcribe(self, audio_path: str) -> TranscriptionResult:
        if not os.path.exists(audio_path):
            raise TranscriptionError(f"Failed to transcribe audio: audio file not found: {audio_path}")
        if not self._config.api_key:
            raise TranscriptionError("Failed to transcribe audio: missing OpenAI API key")

        start_time = time.perf_counter()
        try:
            with open(audio_path, "rb") as audio_file:
                response = requests.post(
                    f"{self._base_url}/v1/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self._config.api_key}"},
                    data={
                        "model": self._config.model,
                        "response_format": "verbose_json",
                        "language": self._config.language,
                    },
                    files={"file": (os.path.basename(audio_path), audio_file)},
                    timeout=self._config.timeout,
                )
        except OSError as exc:
            raise TranscriptionError(f"Failed to transcribe audio: cannot read file: {exc}") from exc
        except requests.RequestException as exc:
            raise TranscriptionError(f"Failed to transcribe audio: {exc}") from exc

        if response.status_code != 200:
            raise TranscriptionError(
                f"Failed to transcribe audio: OpenAI error {response.status_code}: "
                f"{response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TranscriptionError("Failed to transcribe audio: non-JSON response") from exc

        text = str(data.get("text") or "").strip()
        duration = float(data.get("duration") or 0.0)
        self._logger.info(
            "Transcription complete: chars=%s audio_duration=%.1fs elapsed=%.2fs",
            len(text),
            duration,
            time.perf_counter() - start_time,
        )
        return TranscriptionResult(text=text, duration_seconds=duration, language=data.get("language"))
