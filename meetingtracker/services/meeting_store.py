from __future__ import annotations

import itertools
import logging
import threading
from datetime import datetime
from typing import Optional, Union

from meetingtracker.errors import NotFoundError, StatusTransitionError
from meetingtracker.services.analytics import SUNDAY, compute_analytics
from meetingtracker.services.models import (
    ActionItem,
    ActionItemStatus,
    ActionItemUpdate,
    Analytics,
    IngestionUpdate,
    Meeting,
    MeetingEdit,
    MeetingWithActionItems,
    NewActionItem,
    NewMeeting,
    utcnow,
)


class MeetingStore:
    """In-memory storage for meetings and their action items.

    Every public method holds the store lock for its own duration only.
    Sequences of calls (read, then write) are not isolated from each other.
    Records are immutable dataclasses, so callers never share mutable state
    with the store.
    """

    def __init__(self, *, week_start: int = SUNDAY) -> None:
        self._lock = threading.RLock()
        self._meetings: dict[int, Meeting] = {}
        self._action_items: dict[int, ActionItem] = {}
        self._meeting_ids = itertools.count(1)
        self._action_item_ids = itertools.count(1)
        self._week_start = week_start
        self._logger = logging.getLogger("meetingtracker.meetings")

    # ── Meetings ──────────────────────────────────────────────────────

    def create_meeting(self, new: NewMeeting) -> Meeting:
        with self._lock:
            meeting = Meeting(
                id=next(self._meeting_ids),
                title=new.title,
                date=new.date,
                status=new.status,
                created_at=utcnow(),
                duration=new.duration,
                audio_reference=new.audio_reference,
                transcription=new.transcription,
                meeting_type=new.meeting_type,
                participants=tuple(new.participants),
            )
            self._meetings[meeting.id] = meeting
        self._logger.info("Meeting created: id=%s status=%s", meeting.id, meeting.status.value)
        return meeting

    def get_meeting(self, meeting_id: int) -> Optional[Meeting]:
        with self._lock:
            return self._meetings.get(meeting_id)

    def list_meetings(self) -> list[MeetingWithActionItems]:
        with self._lock:
            meetings = sorted(
                self._meetings.values(),
                key=lambda m: (m.date, m.id),
                reverse=True,
            )
            return [self._with_counts(m) for m in meetings]

    def update_meeting(
        self, meeting_id: int, update: Union[MeetingEdit, IngestionUpdate]
    ) -> Optional[Meeting]:
        with self._lock:
            meeting = self._meetings.get(meeting_id)
            if meeting is None:
                return None
            if isinstance(update, IngestionUpdate) and update.status is not None:
                if update.status != meeting.status and not meeting.status.can_transition_to(
                    update.status
                ):
                    raise StatusTransitionError(
                        meeting_id, meeting.status.value, update.status.value
                    )
            updated = update.apply(meeting)
            self._meetings[meeting_id] = updated
        if updated.status != meeting.status:
            self._logger.info(
                "Meeting status: id=%s %s -> %s",
                meeting_id,
                meeting.status.value,
                updated.status.value,
            )
        return updated

    def delete_meeting(self, meeting_id: int) -> bool:
        with self._lock:
            owned = [
                item_id
                for item_id, item in self._action_items.items()
                if item.meeting_id == meeting_id
            ]
            for item_id in owned:
                del self._action_items[item_id]
            deleted = self._meetings.pop(meeting_id, None) is not None
        if deleted:
            self._logger.info(
                "Meeting deleted: id=%s cascaded_action_items=%s", meeting_id, len(owned)
            )
        return deleted

    def search_meetings(self, query: str) -> list[MeetingWithActionItems]:
        needle = query.lower()

        def matches(meeting: Meeting) -> bool:
            if needle in meeting.title.lower():
                return True
            if meeting.transcription and needle in meeting.transcription.lower():
                return True
            return any(needle in p.lower() for p in meeting.participants)

        return [entry for entry in self.list_meetings() if matches(entry.meeting)]

    def _with_counts(self, meeting: Meeting) -> MeetingWithActionItems:
        items = [i for i in self._action_items.values() if i.meeting_id == meeting.id]
        return MeetingWithActionItems(
            meeting=meeting,
            action_items_count=len(items),
            pending_action_items=sum(1 for i in items if i.status == ActionItemStatus.PENDING),
        )

    # ── Action items ──────────────────────────────────────────────────

    def create_action_item(self, new: NewActionItem) -> ActionItem:
        with self._lock:
            if new.meeting_id not in self._meetings:
                raise NotFoundError("Meeting", new.meeting_id)
            item = ActionItem(
                id=next(self._action_item_ids),
                meeting_id=new.meeting_id,
                title=new.title,
                status=new.status,
                created_at=utcnow(),
                description=new.description,
                assignee=new.assignee,
                due_date=new.due_date,
            )
            self._action_items[item.id] = item
        self._logger.debug("Action item created: id=%s meeting_id=%s", item.id, item.meeting_id)
        return item

    def get_action_item(self, item_id: int) -> Optional[ActionItem]:
        with self._lock:
            return self._action_items.get(item_id)

    def list_action_items_for_meeting(self, meeting_id: int) -> list[ActionItem]:
        with self._lock:
            return [i for i in self._action_items.values() if i.meeting_id == meeting_id]

    def list_all_action_items(self) -> list[ActionItem]:
        with self._lock:
            return sorted(
                self._action_items.values(),
                key=lambda i: (i.created_at, i.id),
                reverse=True,
            )

    def list_pending_action_items(self) -> list[ActionItem]:
        """Pending items: dated ones first by due date, then undated newest first."""
        with self._lock:
            pending = [
                i for i in self._action_items.values() if i.status == ActionItemStatus.PENDING
            ]
        dated = [i for i in pending if i.due_date is not None]
        undated = [i for i in pending if i.due_date is None]
        dated.sort(key=lambda i: (i.due_date, -_timestamp(i.created_at), -i.id))
        undated.sort(key=lambda i: (i.created_at, i.id), reverse=True)
        return dated + undated

    def update_action_item(self, item_id: int, update: ActionItemUpdate) -> Optional[ActionItem]:
        with self._lock:
            item = self._action_items.get(item_id)
            if item is None:
                return None
            updated = update.apply(item)
            self._action_items[item_id] = updated
            return updated

    def delete_action_item(self, item_id: int) -> bool:
        with self._lock:
            return self._action_items.pop(item_id, None) is not None

    # ── Analytics ─────────────────────────────────────────────────────

    def compute_analytics(self, now: Optional[datetime] = None) -> Analytics:
        with self._lock:
            meetings = list(self._meetings.values())
            items = list(self._action_items.values())
        return compute_analytics(meetings, items, now=now, week_start=self._week_start)


def _timestamp(value: datetime) -> float:
    return value.timestamp()
