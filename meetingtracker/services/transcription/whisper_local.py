"""On-box transcription with faster-whisper (``pip install meetingtracker[local]``)."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Optional

# Workaround for tqdm threading issue in huggingface_hub downloads
# This must be set before importing faster_whisper
os.environ.setdefault("HF_HUB_DISABLE_PROGRESS_BARS", "1")

from faster_whisper import WhisperModel

from meetingtracker.services.transcription.base import (
    TranscriptionError,
    TranscriptionProvider,
    TranscriptionResult,
)


@dataclass(frozen=True)
class WhisperConfig:
    model_size: str = "base"
    device: str = "cpu"
    compute_type: str = "int8"
    language: Optional[str] = None
    vad_filter: bool = True


class FasterWhisperProvider(TranscriptionProvider):
    """One shared model for every ingestion worker.

    The model is loaded on first use; concurrent callers wait for that single
    load instead of each pulling the weights.
    """

    def __init__(self, config: WhisperConfig) -> None:
        self._config = config
        self._logger = logging.getLogger("meetingtracker.transcription.whisper")
        self._model: Optional[WhisperModel] = None
        self._model_lock = threading.Lock()

    def _load_model(self) -> WhisperModel:
        with self._model_lock:
            if self._model is None:
                started = time.perf_counter()
                self._model = WhisperModel(
                    self._config.model_size,
                    device=self._config.device,
                    compute_type=self._config.compute_type,
                )
                self._logger.info(
                    "Whisper model ready: size=%s device=%s compute_type=%s load=%.1fs",
                    self._config.model_size,
                    self._config.device,
                    self._config.compute_type,
                    time.perf_counter() - started,
                )
            return self._model

    def transcribe(self, audio_path: str) -> TranscriptionResult:
        if not os.path.isfile(audio_path):
            raise TranscriptionError(f"Failed to transcribe audio: audio file not found: {audio_path}")

        started = time.perf_counter()
        try:
            segments, info = self._load_model().transcribe(
                audio_path,
                language=self._config.language,
                vad_filter=self._config.vad_filter,
            )
            # Decoding happens lazily while the generator is consumed.
            pieces = [segment.text.strip() for segment in segments]
        except Exception as exc:
            self._logger.exception("Whisper decode failed: path=%s", audio_path)
            raise TranscriptionError(f"Failed to transcribe audio: {exc}") from exc

        text = " ".join(piece for piece in pieces if piece)
        audio_seconds = float(getattr(info, "duration", 0.0) or 0.0)
        self._logger.info(
            "Whisper transcript: segments=%s chars=%s audio=%.1fs elapsed=%.2fs",
            len(pieces),
            len(text),
            audio_seconds,
            time.perf_counter() - started,
        )
        return TranscriptionResult(
            text=text,
            duration_seconds=audio_seconds,
            language=getattr(info, "language", None),
        )
