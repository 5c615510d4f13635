from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class MeetingStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    TRANSCRIBED = "transcribed"
    ERROR = "error"

    def can_transition_to(self, target: "MeetingStatus") -> bool:
        return target in _MEETING_TRANSITIONS[self]


_MEETING_TRANSITIONS: dict[MeetingStatus, frozenset[MeetingStatus]] = {
    MeetingStatus.UPLOADED: frozenset({MeetingStatus.PROCESSING, MeetingStatus.ERROR}),
    MeetingStatus.PROCESSING: frozenset({MeetingStatus.TRANSCRIBED, MeetingStatus.ERROR}),
    MeetingStatus.TRANSCRIBED: frozenset(),
    MeetingStatus.ERROR: frozenset(),
}


class ActionItemStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class _Unset:
    """Marker for "leave this nullable field alone" in update commands."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Naive values are treated as UTC. Raises ValueError when unparseable.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Meeting:
    id: int
    title: str
    date: datetime
    status: MeetingStatus
    created_at: datetime
    duration: Optional[int] = None
    audio_reference: Optional[str] = None
    transcription: Optional[str] = None
    meeting_type: Optional[str] = None
    participants: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "date": format_timestamp(self.date),
            "duration": self.duration,
            "status": self.status.value,
            "audio_reference": self.audio_reference,
            "transcription": self.transcription,
            "meeting_type": self.meeting_type,
            "participants": list(self.participants),
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class ActionItem:
    id: int
    meeting_id: int
    title: str
    status: ActionItemStatus
    created_at: datetime
    description: Optional[str] = None
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "meeting_id": self.meeting_id,
            "title": self.title,
            "description": self.description,
            "assignee": self.assignee,
            "status": self.status.value,
            "due_date": format_timestamp(self.due_date),
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class MeetingWithActionItems:
    meeting: Meeting
    action_items_count: int
    pending_action_items: int

    def to_dict(self) -> dict:
        payload = self.meeting.to_dict()
        payload["action_items_count"] = self.action_items_count
        payload["pending_action_items"] = self.pending_action_items
        return payload


# ── Creation payloads ─────────────────────────────────────────────────


@dataclass
class NewMeeting:
    title: str
    date: datetime
    status: MeetingStatus = MeetingStatus.UPLOADED
    duration: Optional[int] = None
    audio_reference: Optional[str] = None
    transcription: Optional[str] = None
    meeting_type: Optional[str] = None
    participants: list[str] = field(default_factory=list)


@dataclass
class NewActionItem:
    meeting_id: int
    title: str
    status: ActionItemStatus = ActionItemStatus.PENDING
    description: Optional[str] = None
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None


# ── Update commands ───────────────────────────────────────────────────
#
# Each command enumerates the fields its caller may change. ``None`` on a
# required field and ``UNSET`` on a nullable one mean "leave as is".


@dataclass
class MeetingEdit:
    """Fields a user may edit through the API."""

    title: Optional[str] = None
    date: Optional[datetime] = None
    meeting_type: object = UNSET
    participants: Optional[list[str]] = None

    def apply(self, meeting: Meeting) -> Meeting:
        changes: dict = {}
        if self.title is not None:
            changes["title"] = self.title
        if self.date is not None:
            changes["date"] = self.date
        if self.meeting_type is not UNSET:
            changes["meeting_type"] = self.meeting_type
        if self.participants is not None:
            changes["participants"] = tuple(self.participants)
        return replace(meeting, **changes)


@dataclass
class IngestionUpdate:
    """Fields owned by the ingestion pipeline."""

    status: Optional[MeetingStatus] = None
    transcription: object = UNSET
    duration: object = UNSET
    audio_reference: object = UNSET

    def apply(self, meeting: Meeting) -> Meeting:
        changes: dict = {}
        if self.status is not None:
            changes["status"] = self.status
        if self.transcription is not UNSET:
            changes["transcription"] = self.transcription
        if self.duration is not UNSET:
            changes["duration"] = self.duration
        if self.audio_reference is not UNSET:
            changes["audio_reference"] = self.audio_reference
        return replace(meeting, **changes)


@dataclass
class ActionItemUpdate:
    title: Optional[str] = None
    status: Optional[ActionItemStatus] = None
    description: object = UNSET
    assignee: object = UNSET
    due_date: object = UNSET

    def apply(self, item: ActionItem) -> ActionItem:
        changes: dict = {}
        if self.title is not None:
            changes["title"] = self.title
        if self.status is not None:
            changes["status"] = self.status
        if self.description is not UNSET:
            changes["description"] = self.description
        if self.assignee is not UNSET:
            changes["assignee"] = self.assignee
        if self.due_date is not UNSET:
            changes["due_date"] = self.due_date
        return replace(item, **changes)


@dataclass(frozen=True)
class Analytics:
    total_meetings: int
    total_hours: float
    completed_actions: int
    avg_duration: int
    productivity_score: int
    weekly_meetings: int
    meeting_frequency: list[dict]
    action_item_completion: dict
    meetings_per_week: float
    action_items_per_meeting: float

    def to_dict(self) -> dict:
        return {
            "total_meetings": self.total_meetings,
            "total_hours": self.total_hours,
            "completed_actions": self.completed_actions,
            "avg_duration": self.avg_duration,
            "productivity_score": self.productivity_score,
            "weekly_meetings": self.weekly_meetings,
            "meeting_frequency": list(self.meeting_frequency),
            "action_item_completion": dict(self.action_item_completion),
            "meetings_per_week": self.meetings_per_week,
            "action_items_per_meeting": self.action_items_per_meeting,
        }
