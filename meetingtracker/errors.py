"""Domain errors raised on the synchronous request path."""

from __future__ import annotations


class ValidationError(ValueError):
    """Upload metadata or payload rejected before any state is created."""


class PayloadTooLargeError(ValidationError):
    pass


class NotFoundError(LookupError):
    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} not found: id={entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class StatusTransitionError(RuntimeError):
    def __init__(self, meeting_id: int, current: str, target: str) -> None:
        super().__init__(
            f"Illegal status transition for meeting {meeting_id}: {current} -> {target}"
        )
        self.meeting_id = meeting_id
        self.current = current
        self.target = target
