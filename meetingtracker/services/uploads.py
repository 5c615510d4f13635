"""Validation and storage of uploaded meeting audio."""

from __future__ import annotations

import json
import logging
import os
import re
import uuid
from typing import BinaryIO, Optional

from meetingtracker.errors import PayloadTooLargeError, ValidationError
from meetingtracker.services.ingestion import UploadRequest
from meetingtracker.services.models import parse_timestamp

MAX_UPLOAD_BYTES = 500 * 1024 * 1024
ALLOWED_CONTENT_TYPES = frozenset({"audio/mpeg", "audio/wav", "audio/mp4", "audio/m4a"})
ALLOWED_EXTENSIONS = frozenset({".mp3", ".wav", ".m4a"})
_CHUNK_SIZE = 1024 * 1024

_logger = logging.getLogger("meetingtracker.uploads")


def _sanitize_filename(name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", name or "")
    return cleaned or "audio"


def parse_participants(raw: Optional[str]) -> list[str]:
    """Accept a JSON array of names or a comma-separated list."""
    if raw is None or not raw.strip():
        return []
    text = raw.strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValidationError("participants must be a JSON array of strings") from exc
        if not isinstance(parsed, list) or not all(isinstance(p, str) for p in parsed):
            raise ValidationError("participants must be a JSON array of strings")
        names = parsed
    else:
        names = text.split(",")
    return [name.strip() for name in names if name.strip()]


def validate_upload_metadata(
    *,
    title: Optional[str],
    date: Optional[str],
    meeting_type: Optional[str] = None,
    participants: Optional[str] = None,
    auto_analysis: bool = True,
) -> UploadRequest:
    if not title or not title.strip():
        raise ValidationError("title is required")
    if not date or not date.strip():
        raise ValidationError("date is required")
    try:
        parsed_date = parse_timestamp(date)
    except ValueError as exc:
        raise ValidationError(f"date is not a valid ISO-8601 timestamp: {date!r}") from exc
    return UploadRequest(
        title=title.strip(),
        date=parsed_date,
        meeting_type=(meeting_type or "").strip() or None,
        participants=parse_participants(participants),
        auto_analysis=auto_analysis,
    )


def check_audio_type(filename: Optional[str], content_type: Optional[str]) -> None:
    _, ext = os.path.splitext(filename or "")
    if (content_type or "").lower() in ALLOWED_CONTENT_TYPES:
        return
    if ext.lower() in ALLOWED_EXTENSIONS:
        return
    raise ValidationError("Invalid file type. Only MP3, WAV, and M4A files are allowed.")


def save_upload(
    source: BinaryIO,
    filename: Optional[str],
    uploads_dir: str,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> str:
    """Copy the upload stream to ``uploads_dir`` and return the stored path.

    The copy is aborted and the partial file removed once ``max_bytes`` is
    exceeded.
    """
    os.makedirs(uploads_dir, exist_ok=True)
    original_name = _sanitize_filename(filename or "audio")
    _, ext = os.path.splitext(original_name)
    target_path = os.path.join(uploads_dir, f"{uuid.uuid4().hex}{ext.lower()}")

    written = 0
    try:
        with open(target_path, "wb") as output:
            while True:
                chunk = source.read(_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise PayloadTooLargeError(
                        f"File exceeds the {max_bytes // (1024 * 1024)} MB upload limit"
                    )
                output.write(chunk)
    except BaseException:
        if os.path.exists(target_path):
            os.remove(target_path)
        raise

    if written == 0:
        os.remove(target_path)
        raise ValidationError("Audio file is empty")

    _logger.info("Audio uploaded: %s bytes=%s", target_path, written)
    return target_path
