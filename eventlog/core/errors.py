"""
Structured error taxonomy for the event store.

Every error has:
  - A stable error code (prefixed by domain)
  - A human-readable message
  - An optional detail dict for machine consumers
  - A ``retryable`` flag telling the caller whether resubmitting may succeed

Driver exceptions (SQLAlchemy, aiosqlite, asyncpg) never cross the store
boundary; they are mapped onto these types first.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable, versioned error codes. Never reuse a retired code."""

    # Construction
    EVENT_INVALID = "EVT_001"
    EVENT_TYPE_UNKNOWN = "EVT_002"
    EVENT_DATE_MISSING = "EVT_003"
    QUERY_INVALID = "EVT_004"

    # Storage
    EVENT_DUPLICATE_ID = "STO_001"
    STORAGE_UNAVAILABLE = "STO_002"
    PURGE_INCOMPLETE = "STO_003"

    # Control
    OPERATION_CANCELLED = "CTL_001"


class AppError(Exception):
    """Base class for all event store errors."""

    retryable: bool = False

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "detail": self.detail,
                "retryable": self.retryable,
            }
        }


# ── Typed convenience subclasses ──────────────────────────────────────── #


class ValidationError(AppError):
    """Malformed input rejected before it reaches storage."""

    def __init__(
        self,
        message: str,
        detail: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.EVENT_INVALID,
    ) -> None:
        super().__init__(code=code, message=message, detail=detail)


class DuplicateEventError(AppError):
    """An event with the same id is already stored."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_DUPLICATE_ID,
            message=f"Event {event_id} already exists",
            detail={"id": event_id},
        )
        self.event_id = event_id


class StorageError(AppError):
    retryable = True

    def __init__(
        self,
        message: str,
        detail: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.STORAGE_UNAVAILABLE,
    ) -> None:
        super().__init__(code=code, message=message, detail=detail)


class PurgeError(StorageError):
    """Purge stopped part way; rows already deleted stay deleted."""

    def __init__(self, deleted_count: int, cause: str) -> None:
        super().__init__(
            message=f"Purge failed after deleting {deleted_count} events",
            detail={"deleted_count": deleted_count, "cause": cause},
            code=ErrorCode.PURGE_INCOMPLETE,
        )
        self.deleted_count = deleted_count


class OperationCancelledError(AppError):
    def __init__(self, operation: str, reason: str, deleted_count: int | None = None) -> None:
        detail: dict[str, Any] = {"operation": operation, "reason": reason}
        if deleted_count is not None:
            detail["deleted_count"] = deleted_count
        super().__init__(
            code=ErrorCode.OPERATION_CANCELLED,
            message=f"{operation} cancelled ({reason})",
            detail=detail,
        )
        self.operation = operation
        self.reason = reason
        self.deleted_count = deleted_count
