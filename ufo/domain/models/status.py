"""
Upload Status Model.

A single status enumeration shared by files and chunks, with one legal
transition table per entity kind. Every status mutation on UploadFile and
Chunk goes through validate_transition().
"""

from enum import Enum
from typing import Dict, FrozenSet

from ufo.domain.models.exceptions import InvalidStatusTransition


class UploadStatus(Enum):
    """File and chunk lifecycle states."""
    ADDED = "added"
    PROCESSING = "processing"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    QUEUED = "queued"
    UPLOADING = "uploading"
    PENDING_RETRY = "pending_retry"
    SUCCEEDED_UPLOADING = "succeeded_uploading"
    FAILED_UPLOADING = "failed_uploading"
    CANCELED = "canceled"
    FINALIZING = "finalizing"
    SUCCESSFULLY_COMPLETED = "successfully_completed"
    UNSUCCESSFULLY_COMPLETED = "unsuccessfully_completed"
    DELETED = "deleted"


S = UploadStatus

# Completed work is never retroactively cancelled.
CANCEL_IMMUNE_STATUSES: FrozenSet[UploadStatus] = frozenset({
    S.SUCCEEDED_UPLOADING,
    S.FAILED_UPLOADING,
    S.SUCCESSFULLY_COMPLETED,
    S.UNSUCCESSFULLY_COMPLETED,
})

FILE_TERMINAL_STATUSES: FrozenSet[UploadStatus] = frozenset({
    S.REJECTED,
    S.CANCELED,
    S.SUCCESSFULLY_COMPLETED,
    S.UNSUCCESSFULLY_COMPLETED,
    S.DELETED,
})

# Units holding (or about to hold) a connection slot.
STARTABLE_UNIT_STATUSES: FrozenSet[UploadStatus] = frozenset({
    S.QUEUED,
    S.PENDING_RETRY,
})


FILE_TRANSITIONS: Dict[UploadStatus, FrozenSet[UploadStatus]] = {
    S.ADDED: frozenset({S.PROCESSING, S.SUCCEEDED_UPLOADING, S.CANCELED, S.DELETED}),
    S.PROCESSING: frozenset({S.ACCEPTED, S.REJECTED, S.CANCELED, S.DELETED}),
    S.ACCEPTED: frozenset({S.QUEUED, S.CANCELED, S.DELETED}),
    S.QUEUED: frozenset({S.UPLOADING, S.CANCELED, S.DELETED}),
    S.UPLOADING: frozenset({
        S.SUCCEEDED_UPLOADING, S.FAILED_UPLOADING, S.CANCELED, S.DELETED,
    }),
    S.SUCCEEDED_UPLOADING: frozenset({S.FINALIZING, S.DELETED}),
    S.FAILED_UPLOADING: frozenset({S.QUEUED, S.DELETED}),
    S.FINALIZING: frozenset({
        S.SUCCESSFULLY_COMPLETED, S.UNSUCCESSFULLY_COMPLETED, S.CANCELED, S.DELETED,
    }),
    S.SUCCESSFULLY_COMPLETED: frozenset({S.DELETED}),
    S.UNSUCCESSFULLY_COMPLETED: frozenset({S.DELETED}),
    S.CANCELED: frozenset({S.QUEUED, S.DELETED}),
    S.REJECTED: frozenset(),
    S.DELETED: frozenset(),
}

CHUNK_TRANSITIONS: Dict[UploadStatus, FrozenSet[UploadStatus]] = {
    S.QUEUED: frozenset({S.UPLOADING, S.CANCELED}),
    S.UPLOADING: frozenset({
        S.SUCCEEDED_UPLOADING, S.PENDING_RETRY, S.FAILED_UPLOADING, S.CANCELED,
    }),
    S.PENDING_RETRY: frozenset({S.UPLOADING, S.CANCELED}),
    S.SUCCEEDED_UPLOADING: frozenset(),
    S.FAILED_UPLOADING: frozenset({S.QUEUED}),
    S.CANCELED: frozenset({S.QUEUED}),
}

_TABLES = {
    "file": FILE_TRANSITIONS,
    "chunk": CHUNK_TRANSITIONS,
}


def can_transition(entity: str, current: UploadStatus, target: UploadStatus) -> bool:
    """Check whether `entity` ("file" or "chunk") may move from current to target."""
    return target in _TABLES[entity].get(current, frozenset())


def validate_transition(entity: str, current: UploadStatus, target: UploadStatus) -> None:
    """
    Reject illegal status transitions.

    Raises:
        InvalidStatusTransition: If the move is not in the entity's table
    """
    if not can_transition(entity, current, target):
        raise InvalidStatusTransition(
            f"Illegal {entity} transition {current.value} -> {target.value}",
            entity=entity,
            current_status=current,
            target_status=target,
        )


def is_cancel_immune(status: UploadStatus) -> bool:
    return status in CANCEL_IMMUNE_STATUSES


__all__ = [
    "UploadStatus",
    "CANCEL_IMMUNE_STATUSES",
    "FILE_TERMINAL_STATUSES",
    "STARTABLE_UNIT_STATUSES",
    "FILE_TRANSITIONS",
    "CHUNK_TRANSITIONS",
    "can_transition",
    "validate_transition",
    "is_cancel_immune",
]
