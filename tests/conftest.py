"""
Pytest configuration and fixtures.

External engines are replaced by fakes: no test reaches the network or loads
a speech model.
"""
import copy
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from meetingtracker.config import DEFAULT_CONFIG
from meetingtracker.main import create_app
from meetingtracker.services.extraction import ExtractionService
from meetingtracker.services.llm.base import LLMProvider, LLMProviderError
from meetingtracker.services.meeting_store import MeetingStore
from meetingtracker.services.models import NewMeeting
from meetingtracker.services.transcription.base import (
    TranscriptionError,
    TranscriptionProvider,
    TranscriptionResult,
)


# ============================================
# FAKE ADAPTERS
# ============================================

class FakeTranscriber(TranscriptionProvider):
    """Returns a canned result, or raises the configured error."""

    def __init__(self, text: str = "", duration_seconds: float = 0.0, error: Optional[Exception] = None):
        self.text = text
        self.duration_seconds = duration_seconds
        self.error = error
        self.calls: list[str] = []

    def transcribe(self, audio_path: str) -> TranscriptionResult:
        self.calls.append(audio_path)
        if self.error is not None:
            raise self.error
        return TranscriptionResult(text=self.text, duration_seconds=self.duration_seconds)


class FakeLLMProvider(LLMProvider):
    """LLM stand-in returning raw (unnormalized) payloads."""

    def __init__(
        self,
        action_items: Optional[list[Any]] = None,
        summary: str = "",
        topics: Optional[list[Any]] = None,
        error: Optional[Exception] = None,
    ):
        self.action_items = action_items or []
        self.summary = summary
        self.topics = topics or []
        self.error = error
        self.calls: list[str] = []

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if self.error is not None:
            raise self.error

    def extract_action_items(self, transcript: str) -> list[Any]:
        self._maybe_fail("extract_action_items")
        return list(self.action_items)

    def summarize(self, transcript: str) -> str:
        self._maybe_fail("summarize")
        return self.summary

    def extract_key_topics(self, transcript: str) -> list[Any]:
        self._maybe_fail("extract_key_topics")
        return list(self.topics)

    def prompt(self, prompt: str) -> str:
        self._maybe_fail("prompt")
        return "Hi"


# ============================================
# STORE FIXTURES
# ============================================

@pytest.fixture
def store():
    return MeetingStore()


@pytest.fixture
def make_meeting(store):
    """Create a meeting with sensible defaults."""

    def _make(title: str = "Weekly Sync", date: Optional[datetime] = None, **kwargs):
        return store.create_meeting(
            NewMeeting(
                title=title,
                date=date or datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc),
                **kwargs,
            )
        )

    return _make


# ============================================
# ADAPTER FIXTURES
# ============================================

@pytest.fixture
def transcriber():
    return FakeTranscriber(text="Alice will send the report by Friday.", duration_seconds=600.0)


@pytest.fixture
def llm_provider():
    return FakeLLMProvider(
        action_items=[{"title": "Send report", "assignee": "Alice", "dueDate": "2024-01-19"}],
        summary="Alice owns the report.",
        topics=["Reporting", "Deadlines"],
    )


@pytest.fixture
def extraction_service(llm_provider):
    return ExtractionService(copy.deepcopy(DEFAULT_CONFIG), provider=llm_provider)


# ============================================
# APP FIXTURES
# ============================================

@pytest.fixture
def app(tmp_path, monkeypatch, transcriber, extraction_service):
    monkeypatch.delenv("MEETINGTRACKER_DATA_DIR", raising=False)
    application = create_app(
        cwd=str(tmp_path),
        config=copy.deepcopy(DEFAULT_CONFIG),
        transcriber=transcriber,
        extraction_service=extraction_service,
        setup_logging=False,
    )
    yield application
    application.state.ingestion_queue.stop()


@pytest.fixture
def test_client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def upload_form():
    return {
        "title": "Standup",
        "date": "2024-01-10T09:00:00Z",
        "meeting_type": "Team Meeting",
        "participants": '["Alice", "Bob"]',
        "auto_analysis": "true",
    }


@pytest.fixture
def audio_file():
    return {"audio": ("standup.mp3", b"ID3fake-mp3-bytes", "audio/mpeg")}


@pytest.fixture
def transcription_error():
    return TranscriptionError("Failed to transcribe audio: decoder exploded")


@pytest.fixture
def llm_error():
    return LLMProviderError("Failed to reach OpenAI: connection refused")
