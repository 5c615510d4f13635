"""Analytics and export endpoints."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from meetingtracker.services.export import action_items_to_csv, meetings_to_json
from meetingtracker.services.meeting_store import MeetingStore


def create_reports_router(meeting_store: MeetingStore) -> APIRouter:
    router = APIRouter(tags=["reports"])
    logger = logging.getLogger("meetingtracker.api.reports")

    @router.get("/api/analytics")
    def get_analytics() -> dict:
        try:
            return meeting_store.compute_analytics().to_dict()
        except Exception as exc:
            logger.exception("Analytics failed: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to fetch analytics") from exc

    @router.get("/api/export/meetings")
    def export_meetings() -> Response:
        try:
            content = meetings_to_json(meeting_store.list_meetings())
        except Exception as exc:
            logger.exception("Meeting export failed: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to export meetings") from exc
        return Response(
            content,
            media_type="application/json",
            headers={"Content-Disposition": 'attachment; filename="meetings.json"'},
        )

    @router.get("/api/export/action-items")
    def export_action_items() -> Response:
        try:
            content = action_items_to_csv(meeting_store.list_all_action_items())
        except Exception as exc:
            logger.exception("Action item export failed: %s", exc)
            raise HTTPException(status_code=500, detail="Failed to export action items") from exc
        return Response(
            content,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="action-items.csv"'},
        )

    return router
