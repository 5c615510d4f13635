from typing import Optional

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from meetingtracker.services.extraction import ExtractionError, ExtractionService
from meetingtracker.services.ingestion import IngestionQueue
from meetingtracker.services.meeting_store import MeetingStore
from meetingtracker.services.models import UNSET, MeetingEdit, MeetingStatus, parse_timestamp

MIN_SEARCH_LENGTH = 3


class UpdateMeetingRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    date: Optional[str] = None
    meeting_type: Optional[str] = None
    participants: Optional[list[str]] = None

    def to_edit(self) -> MeetingEdit:
        if self.title is not None and not self.title.strip():
            raise HTTPException(status_code=400, detail="title must not be blank")
        date = None
        if self.date is not None:
            try:
                date = parse_timestamp(self.date)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail="Invalid date") from exc
        meeting_type = UNSET
        if "meeting_type" in self.model_fields_set:
            meeting_type = (self.meeting_type or "").strip() or None
        return MeetingEdit(
            title=self.title.strip() if self.title else None,
            date=date,
            meeting_type=meeting_type,
            participants=[p.strip() for p in self.participants if p.strip()]
            if self.participants is not None
            else None,
        )


def create_meetings_router(
    meeting_store: MeetingStore,
    extraction_service: ExtractionService,
    ingestion_queue: IngestionQueue,
) -> APIRouter:
    router = APIRouter(tags=["meetings"])
    logger = logging.getLogger("meetingtracker.api.meetings")

    def _require_meeting(meeting_id: int):
        meeting = meeting_store.get_meeting(meeting_id)
        if not meeting:
            raise HTTPException(status_code=404, detail="Meeting not found")
        return meeting

    def _require_transcript(meeting_id: int) -> str:
        meeting = _require_meeting(meeting_id)
        if meeting.status != MeetingStatus.TRANSCRIBED or not meeting.transcription:
            raise HTTPException(status_code=409, detail="Meeting has no transcription yet")
        return meeting.transcription

    @router.get("/api/meetings")
    def list_meetings() -> list[dict]:
        return [entry.to_dict() for entry in meeting_store.list_meetings()]

    @router.get("/api/meetings/search/{query}")
    def search_meetings(query: str) -> list[dict]:
        if len(query.strip()) < MIN_SEARCH_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Search query must be at least {MIN_SEARCH_LENGTH} characters",
            )
        return [entry.to_dict() for entry in meeting_store.search_meetings(query.strip())]

    @router.get("/api/meetings/{meeting_id}")
    def get_meeting(meeting_id: int) -> dict:
        return _require_meeting(meeting_id).to_dict()

    @router.patch("/api/meetings/{meeting_id}")
    def update_meeting(meeting_id: int, payload: UpdateMeetingRequest) -> dict:
        logger.info("Meeting update: id=%s fields=%s", meeting_id, sorted(payload.model_fields_set))
        meeting = meeting_store.update_meeting(meeting_id, payload.to_edit())
        if not meeting:
            raise HTTPException(status_code=404, detail="Meeting not found")
        return meeting.to_dict()

    @router.delete("/api/meetings/{meeting_id}")
    def delete_meeting(meeting_id: int) -> dict:
        if not meeting_store.delete_meeting(meeting_id):
            raise HTTPException(status_code=404, detail="Meeting not found")
        return {"message": "Meeting deleted successfully"}

    @router.get("/api/meetings/{meeting_id}/ingestion")
    def get_ingestion_status(meeting_id: int) -> dict:
        meeting = _require_meeting(meeting_id)
        task = ingestion_queue.latest_for_meeting(meeting_id)
        return {
            "meeting_id": meeting_id,
            "status": meeting.status.value,
            "task": task.to_dict() if task else None,
        }

    @router.get("/api/meetings/{meeting_id}/summary")
    def get_summary(meeting_id: int) -> dict:
        transcript = _require_transcript(meeting_id)
        try:
            summary = extraction_service.summarize(transcript)
        except ExtractionError as exc:
            logger.warning("Summary failed: id=%s error=%s", meeting_id, exc)
            raise HTTPException(status_code=502, detail="Failed to summarize meeting") from exc
        return {"meeting_id": meeting_id, "summary": summary}

    @router.get("/api/meetings/{meeting_id}/topics")
    def get_topics(meeting_id: int) -> dict:
        transcript = _require_transcript(meeting_id)
        try:
            topics = extraction_service.extract_key_topics(transcript)
        except ExtractionError as exc:
            logger.warning("Topic extraction failed: id=%s error=%s", meeting_id, exc)
            raise HTTPException(status_code=502, detail="Failed to extract key topics") from exc
        return {"meeting_id": meeting_id, "topics": topics}

    return router
