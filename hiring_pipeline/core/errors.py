"""Domain errors raised by the pipeline services.

Validation errors (``TransitionError`` and subclasses) mean the request was invalid and
must not be retried as-is. ``StorageError`` means the record store failed or was
contended and the same request may succeed on retry.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class TransitionErrorKind(str, Enum):
    DISCARDED_APPLICATION_IMMUTABLE = "DiscardedApplicationImmutable"
    MISSING_OFFER_STATUS = "MissingOfferStatus"
    MISSING_FINAL_OUTCOME = "MissingFinalOutcome"
    INVALID_REJECTION_REASON = "InvalidRejectionReason"
    UNKNOWN_STAGE = "UnknownStage"


class PipelineError(Exception):
    code: str = "PIPELINE_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ApplicationNotFound(PipelineError):
    code = "NOT_FOUND"

    def __init__(self, application_id: int) -> None:
        self.application_id = application_id
        super().__init__(f"Application with id '{application_id}' not found")


class InvalidRequest(PipelineError):
    code = "VALIDATION_ERROR"


class StorageError(PipelineError):
    code = "STORAGE_ERROR"

    def __init__(self, message: str, *, retryable: bool = True, details: dict[str, Any] | None = None) -> None:
        self.retryable = retryable
        super().__init__(message, details=details)


class TransitionError(PipelineError):
    kind: TransitionErrorKind
    field: str | None = None

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        missing_fields: tuple[str, ...] = (),
    ) -> None:
        self.missing_fields = tuple(missing_fields)
        super().__init__(message, details=details)

    @property
    def code(self) -> str:  # type: ignore[override]
        return self.kind.value

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "missing_fields": list(self.missing_fields),
        }
        if self.details:
            payload["details"] = self.details
        return payload


class DiscardedApplicationImmutable(TransitionError):
    kind = TransitionErrorKind.DISCARDED_APPLICATION_IMMUTABLE
    field = "stage"


class UnknownStage(TransitionError):
    kind = TransitionErrorKind.UNKNOWN_STAGE
    field = "stage"


class MissingOfferStatus(TransitionError):
    kind = TransitionErrorKind.MISSING_OFFER_STATUS
    field = "offer_status"


class MissingFinalOutcome(TransitionError):
    kind = TransitionErrorKind.MISSING_FINAL_OUTCOME
    field = "final_outcome"


class InvalidRejectionReason(TransitionError):
    kind = TransitionErrorKind.INVALID_REJECTION_REASON
    field = "rejection_reason"
