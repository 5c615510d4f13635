"""
Meeting ingestion: upload acceptance, background transcription and extraction.

The pipeline creates the meeting synchronously, then hands the slow work to an
``IngestionQueue``: a small pool of daemon worker threads. Every submitted job
gets an ``IngestionTask`` handle so failures are logged and observable instead
of vanishing with a detached thread.
"""

from __future__ import annotations

import itertools
import logging
import os
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from meetingtracker.errors import NotFoundError, StatusTransitionError
from meetingtracker.services.analytics import round_half_up
from meetingtracker.services.extraction import ExtractionError
from meetingtracker.services.models import (
    IngestionUpdate,
    Meeting,
    MeetingStatus,
    NewActionItem,
    NewMeeting,
    format_timestamp,
    parse_timestamp,
    utcnow,
)
from meetingtracker.services.transcription import TranscriptionError

if TYPE_CHECKING:
    from meetingtracker.services.extraction import ExtractionService
    from meetingtracker.services.meeting_store import MeetingStore
    from meetingtracker.services.transcription import TranscriptionProvider

_logger = logging.getLogger("meetingtracker.ingestion")
_trace = logging.getLogger("meetingtracker.trace")


class TaskState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class IngestionTask:
    """Handle for one background ingestion job."""

    task_id: int
    meeting_id: int
    state: TaskState = TaskState.QUEUED
    error: Optional[str] = None
    submitted_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    _done: threading.Event = field(default_factory=threading.Event, repr=False)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "meeting_id": self.meeting_id,
            "state": self.state.value,
            "error": self.error,
            "submitted_at": format_timestamp(self.submitted_at),
            "finished_at": format_timestamp(self.finished_at),
        }


class IngestionUnavailableError(RuntimeError):
    """The queue has no running workers to accept a job."""


def describe_failure(exc: Exception) -> str:
    """Short, client-safe summary of why a job failed."""
    if isinstance(exc, ExtractionError):
        return "Action item extraction failed"
    if isinstance(exc, StatusTransitionError):
        return "Meeting is not awaiting ingestion"
    if isinstance(exc, NotFoundError):
        return "Meeting was deleted during ingestion"
    return "Ingestion failed"


class IngestionQueue:
    """Bounded pool of worker threads running ingestion jobs in FIFO order."""

    _SENTINEL = object()

    def __init__(self, workers: int = 2, *, history_limit: int = 200) -> None:
        self._workers = max(1, workers)
        self._queue: "queue.Queue" = queue.Queue()
        self._threads: list[threading.Thread] = []
        self._tasks: dict[int, IngestionTask] = {}
        self._latest_by_meeting: dict[int, IngestionTask] = {}
        self._history_limit = history_limit
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            _logger.warning("IngestionQueue already running")
            return
        self._running = True
        for index in range(self._workers):
            thread = threading.Thread(
                target=self._worker_loop,
                name=f"IngestionWorker-{index + 1}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        _logger.info("IngestionQueue started: workers=%s", self._workers)

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
        for _ in self._threads:
            self._queue.put(self._SENTINEL)
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
        _logger.info("IngestionQueue stopped")

    def submit(self, meeting_id: int, job: Callable[[], None]) -> IngestionTask:
        with self._lock:
            if not self._running:
                raise IngestionUnavailableError("Ingestion is not running")
            task = IngestionTask(task_id=next(self._ids), meeting_id=meeting_id)
            self._tasks[task.task_id] = task
            self._latest_by_meeting[meeting_id] = task
            self._prune_history()
        self._queue.put((task, job))
        _logger.info("Ingestion queued: task=%s meeting_id=%s", task.task_id, meeting_id)
        return task

    def get_task(self, task_id: int) -> Optional[IngestionTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def latest_for_meeting(self, meeting_id: int) -> Optional[IngestionTask]:
        with self._lock:
            return self._latest_by_meeting.get(meeting_id)

    def _prune_history(self) -> None:
        finished = [t for t in self._tasks.values() if t.done]
        overflow = len(self._tasks) - self._history_limit
        for task in finished[:max(0, overflow)]:
            del self._tasks[task.task_id]
            if self._latest_by_meeting.get(task.meeting_id) is task:
                del self._latest_by_meeting[task.meeting_id]

    def _worker_loop(self) -> None:
        while True:
            entry = self._queue.get()
            try:
                if entry is self._SENTINEL:
                    return
                task, job = entry
                self._run(task, job)
            finally:
                self._queue.task_done()

    def _run(self, task: IngestionTask, job: Callable[[], None]) -> None:
        task.state = TaskState.RUNNING
        try:
            job()
        except Exception as exc:
            task.state = TaskState.FAILED
            task.error = describe_failure(exc)
            _logger.exception(
                "Ingestion task failed: task=%s meeting_id=%s error=%s",
                task.task_id,
                task.meeting_id,
                exc,
            )
        else:
            task.state = TaskState.SUCCEEDED
        finally:
            task.finished_at = utcnow()
            task._done.set()


@dataclass
class UploadRequest:
    """Validated upload metadata."""

    title: str
    date: datetime
    meeting_type: Optional[str] = None
    participants: list[str] = field(default_factory=list)
    auto_analysis: bool = True


def parse_due_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        _logger.debug("Ignoring unparseable due date: %r", value)
        return None


class IngestionPipeline:
    """Drives one meeting through uploaded -> processing -> transcribed | error."""

    def __init__(
        self,
        meeting_store: "MeetingStore",
        transcriber: "TranscriptionProvider",
        extractor: "ExtractionService",
        task_queue: IngestionQueue,
    ) -> None:
        self._meeting_store = meeting_store
        self._transcriber = transcriber
        self._extractor = extractor
        self._queue = task_queue

    def _trace_log(self, stage: str, **fields) -> None:
        payload = " ".join(f"{k}={fields[k]!r}" for k in sorted(fields.keys()))
        _trace.info("TRACE stage=%s ts=%s %s", stage, utcnow().isoformat(), payload)

    def submit(self, upload: UploadRequest, audio_path: str) -> tuple[Meeting, IngestionTask]:
        """Create the meeting row and schedule background processing.

        Returns as soon as the meeting exists in ``uploaded`` state. If the
        queue is not running the meeting is marked ``error``, its audio is
        released and ``IngestionUnavailableError`` propagates.
        """
        meeting = self._meeting_store.create_meeting(
            NewMeeting(
                title=upload.title,
                date=upload.date,
                status=MeetingStatus.UPLOADED,
                audio_reference=audio_path,
                meeting_type=upload.meeting_type,
                participants=list(upload.participants),
            )
        )
        self._trace_log("uploaded", meeting_id=meeting.id, auto_analysis=upload.auto_analysis)
        try:
            task = self._queue.submit(
                meeting.id,
                lambda: self.process(meeting.id, audio_path, upload.auto_analysis),
            )
        except IngestionUnavailableError:
            _logger.error("Ingestion queue not running; failing meeting id=%s", meeting.id)
            self._mark_error(meeting.id)
            self._release_audio(meeting.id, audio_path)
            raise
        return meeting, task

    def process(self, meeting_id: int, audio_path: str, auto_analysis: bool) -> None:
        """Run the whole background job for one meeting.

        Transcription failures end in ``error`` state and return normally.
        Extraction failures propagate so the task handle records them; the
        meeting stays ``transcribed``.
        """
        try:
            transcript = self._transcribe(meeting_id, audio_path)
            if transcript is not None and auto_analysis and transcript.strip():
                self._extract(meeting_id, transcript)
        finally:
            self._release_audio(meeting_id, audio_path)

    def _transition(self, meeting_id: int, update: IngestionUpdate) -> Optional[Meeting]:
        meeting = self._meeting_store.update_meeting(meeting_id, update)
        if meeting is None:
            _logger.warning("Meeting vanished during ingestion: id=%s", meeting_id)
        else:
            self._trace_log("transition", meeting_id=meeting_id, status=meeting.status.value)
        return meeting

    def _transcribe(self, meeting_id: int, audio_path: str) -> Optional[str]:
        if self._meeting_store.get_meeting(meeting_id) is None:
            _logger.warning("Meeting not found before processing: id=%s", meeting_id)
            return None
        if self._transition(meeting_id, IngestionUpdate(status=MeetingStatus.PROCESSING)) is None:
            return None

        try:
            result = self._transcriber.transcribe(audio_path)
        except TranscriptionError as exc:
            _logger.warning("Transcription failed: meeting_id=%s error=%s", meeting_id, exc)
            self._mark_error(meeting_id)
            return None
        except Exception:
            _logger.exception("Unexpected transcription failure: meeting_id=%s", meeting_id)
            self._mark_error(meeting_id)
            return None

        duration = int(round_half_up(result.duration_seconds / 60))
        meeting = self._transition(
            meeting_id,
            IngestionUpdate(
                status=MeetingStatus.TRANSCRIBED,
                transcription=result.text,
                duration=duration,
            ),
        )
        if meeting is None:
            return None
        _logger.info(
            "Meeting transcribed: id=%s chars=%s duration_min=%s",
            meeting_id,
            len(result.text),
            duration,
        )
        return result.text

    def _mark_error(self, meeting_id: int) -> None:
        try:
            self._transition(meeting_id, IngestionUpdate(status=MeetingStatus.ERROR))
        except StatusTransitionError as exc:
            _logger.warning("Could not mark meeting as error: %s", exc)

    def _extract(self, meeting_id: int, transcript: str) -> None:
        try:
            candidates = self._extractor.extract_action_items(transcript)
        except ExtractionError as exc:
            _logger.warning("Extraction failed: meeting_id=%s error=%s", meeting_id, exc)
            raise

        created = 0
        for candidate in candidates:
            try:
                self._meeting_store.create_action_item(
                    NewActionItem(
                        meeting_id=meeting_id,
                        title=candidate.title,
                        description=candidate.description,
                        assignee=candidate.assignee,
                        due_date=parse_due_date(candidate.due_date),
                    )
                )
            except NotFoundError:
                _logger.warning(
                    "Meeting deleted during extraction: id=%s created=%s of %s",
                    meeting_id,
                    created,
                    len(candidates),
                )
                raise
            created += 1
        self._trace_log("extracted", meeting_id=meeting_id, action_items=created)

    def _release_audio(self, meeting_id: int, audio_path: str) -> None:
        if not audio_path:
            return
        try:
            os.remove(audio_path)
        except FileNotFoundError:
            _logger.debug("Upload already removed: %s", audio_path)
        except OSError as exc:
            _logger.warning("Failed to delete uploaded file: %s error=%s", audio_path, exc)
            return
        try:
            self._meeting_store.update_meeting(meeting_id, IngestionUpdate(audio_reference=None))
        except Exception as exc:
            _logger.warning("Failed to clear audio reference: meeting_id=%s error=%s", meeting_id, exc)
