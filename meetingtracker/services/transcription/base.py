from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    duration_seconds: float
    language: Optional[str] = None


class TranscriptionProvider(ABC):
    @abstractmethod
    def transcribe(self, audio_path: str) -> TranscriptionResult:
        """Turn the audio file at ``audio_path`` into text.

        Implementations raise TranscriptionError for unreadable audio and for
        failures of the underlying engine. They never retry.
        """
        raise NotImplementedError


class TranscriptionError(RuntimeError):
    pass
