from typing import Optional

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from meetingtracker.errors import NotFoundError
from meetingtracker.services.meeting_store import MeetingStore
from meetingtracker.services.models import (
    UNSET,
    ActionItemStatus,
    ActionItemUpdate,
    NewActionItem,
    parse_timestamp,
)


def _parse_optional_date(value: Optional[str]):
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid due_date") from exc


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class CreateActionItemRequest(BaseModel):
    meeting_id: int
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    assignee: Optional[str] = None
    status: ActionItemStatus = ActionItemStatus.PENDING
    due_date: Optional[str] = None


class UpdateActionItemRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    assignee: Optional[str] = None
    status: Optional[ActionItemStatus] = None
    due_date: Optional[str] = None

    def to_update(self) -> ActionItemUpdate:
        if self.title is not None and not self.title.strip():
            raise HTTPException(status_code=400, detail="title must not be blank")
        fields = self.model_fields_set
        return ActionItemUpdate(
            title=self.title.strip() if self.title else None,
            status=self.status,
            description=_optional_text(self.description) if "description" in fields else UNSET,
            assignee=_optional_text(self.assignee) if "assignee" in fields else UNSET,
            due_date=_parse_optional_date(self.due_date) if "due_date" in fields else UNSET,
        )


def create_action_items_router(meeting_store: MeetingStore) -> APIRouter:
    router = APIRouter(tags=["action-items"])
    logger = logging.getLogger("meetingtracker.api.action_items")

    @router.get("/api/action-items")
    def list_action_items() -> list[dict]:
        return [item.to_dict() for item in meeting_store.list_all_action_items()]

    @router.get("/api/action-items/pending")
    def list_pending_action_items() -> list[dict]:
        return [item.to_dict() for item in meeting_store.list_pending_action_items()]

    @router.get("/api/action-items/meeting/{meeting_id}")
    def list_meeting_action_items(meeting_id: int) -> list[dict]:
        return [
            item.to_dict() for item in meeting_store.list_action_items_for_meeting(meeting_id)
        ]

    @router.get("/api/action-items/{item_id}")
    def get_action_item(item_id: int) -> dict:
        item = meeting_store.get_action_item(item_id)
        if not item:
            raise HTTPException(status_code=404, detail="Action item not found")
        return item.to_dict()

    @router.post("/api/action-items", status_code=201)
    def create_action_item(payload: CreateActionItemRequest) -> dict:
        title = payload.title.strip()
        if not title:
            raise HTTPException(status_code=400, detail="title is required")
        try:
            item = meeting_store.create_action_item(
                NewActionItem(
                    meeting_id=payload.meeting_id,
                    title=title,
                    status=payload.status,
                    description=_optional_text(payload.description),
                    assignee=_optional_text(payload.assignee),
                    due_date=_parse_optional_date(payload.due_date),
                )
            )
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail="Meeting not found") from exc
        logger.info("Action item created: id=%s meeting_id=%s", item.id, item.meeting_id)
        return item.to_dict()

    @router.patch("/api/action-items/{item_id}")
    def update_action_item(item_id: int, payload: UpdateActionItemRequest) -> dict:
        item = meeting_store.update_action_item(item_id, payload.to_update())
        if not item:
            raise HTTPException(status_code=404, detail="Action item not found")
        return item.to_dict()

    @router.delete("/api/action-items/{item_id}")
    def delete_action_item(item_id: int) -> dict:
        if not meeting_store.delete_action_item(item_id):
            raise HTTPException(status_code=404, detail="Action item not found")
        return {"message": "Action item deleted successfully"}

    return router
