from __future__ import annotations

import csv
import io
import json
from typing import Iterable

from meetingtracker.services.models import ActionItem, MeetingWithActionItems

ACTION_ITEM_COLUMNS = (
    "id",
    "meeting_id",
    "title",
    "description",
    "assignee",
    "status",
    "due_date",
    "created_at",
)


def action_items_to_csv(items: Iterable[ActionItem]) -> str:
    """One row per item, every value quoted, embedded quotes doubled."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(ACTION_ITEM_COLUMNS)
    for item in items:
        row = item.to_dict()
        writer.writerow(["" if row[col] is None else row[col] for col in ACTION_ITEM_COLUMNS])
    return buffer.getvalue()


def meetings_to_json(meetings: Iterable[MeetingWithActionItems]) -> str:
    return json.dumps([entry.to_dict() for entry in meetings], indent=2, ensure_ascii=False)
