import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from meetingtracker.errors import PayloadTooLargeError, ValidationError
from meetingtracker.services.ingestion import IngestionPipeline, IngestionUnavailableError
from meetingtracker.services.uploads import (
    MAX_UPLOAD_BYTES,
    check_audio_type,
    save_upload,
    validate_upload_metadata,
)


def create_uploads_router(
    ctx, pipeline: IngestionPipeline, max_bytes: int = MAX_UPLOAD_BYTES
) -> APIRouter:
    router = APIRouter(tags=["uploads"])
    logger = logging.getLogger("meetingtracker.api.uploads")

    @router.post("/api/meetings", status_code=201)
    def upload_meeting(
        title: Optional[str] = Form(None),
        date: Optional[str] = Form(None),
        meeting_type: Optional[str] = Form(None),
        participants: Optional[str] = Form(None),
        auto_analysis: bool = Form(True),
        audio: Optional[UploadFile] = File(None),
    ) -> dict:
        try:
            if audio is None or not audio.filename:
                raise ValidationError("Audio file is required")
            upload = validate_upload_metadata(
                title=title,
                date=date,
                meeting_type=meeting_type,
                participants=participants,
                auto_analysis=auto_analysis,
            )
            check_audio_type(audio.filename, audio.content_type)
            audio_path = save_upload(audio.file, audio.filename, ctx.uploads_dir, max_bytes)
        except PayloadTooLargeError as exc:
            raise HTTPException(status_code=413, detail=str(exc)) from exc
        except ValidationError as exc:
            logger.info("Upload rejected: %s", exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except OSError as exc:
            logger.exception("Upload failed: %s", exc)
            raise HTTPException(status_code=500, detail="Upload failed") from exc

        try:
            meeting, task = pipeline.submit(upload, audio_path)
        except IngestionUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        logger.info(
            "Meeting accepted: id=%s task=%s auto_analysis=%s",
            meeting.id,
            task.task_id,
            upload.auto_analysis,
        )
        return meeting.to_dict()

    return router
