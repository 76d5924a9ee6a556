from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from hiring_pipeline.core.taxonomy import (
    FinalOutcome,
    OfferStatus,
    RejectionReason,
    Stage,
    StageStatus,
    normalize_identifier,
)
from hiring_pipeline.services.audit_trail import StageTransitionRecord


class ApplicationCreate(BaseModel):
    candidate_id: int
    job_id: int
    notes: Optional[str] = None


class ApplicationOut(BaseModel):
    application_id: int
    candidate_id: int
    job_id: int
    current_stage: Stage
    current_stage_status: StageStatus
    offer_status: Optional[OfferStatus] = None
    final_outcome: Optional[FinalOutcome] = None
    final_rejection_reason: Optional[RejectionReason] = None
    recruiter_rating: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StageHistoryOut(BaseModel):
    stage_history_id: Optional[int] = None
    application_id: int
    from_stage: Optional[Stage] = None
    to_stage: Stage
    status: StageStatus
    offer_status: Optional[OfferStatus] = None
    final_outcome: Optional[FinalOutcome] = None
    final_rejection_reason: Optional[RejectionReason] = None
    changed_by: Optional[str] = None
    changed_at: datetime
    notes: Optional[str] = None

    @classmethod
    def from_record(cls, record: StageTransitionRecord) -> "StageHistoryOut":
        return cls(
            stage_history_id=record.record_id,
            application_id=record.application_id,
            from_stage=record.from_stage,
            to_stage=record.to_stage,
            status=record.status,
            offer_status=record.offer_status,
            final_outcome=record.final_outcome,
            final_rejection_reason=record.rejection_reason,
            changed_by=record.changed_by,
            changed_at=record.changed_at,
            notes=record.notes,
        )


class StageChangeRequest(BaseModel):
    # Kept as a raw string so identifiers outside the pipeline come back as UnknownStage.
    to_stage: str = Field(min_length=1)
    status: StageStatus
    offer_status: Optional[OfferStatus] = None
    final_outcome: Optional[FinalOutcome] = None
    final_rejection_reason: Optional[RejectionReason] = None
    notes: Optional[str] = None

    @field_validator("status", "offer_status", "final_outcome", "final_rejection_reason", mode="before")
    @classmethod
    def normalize_enum_value(cls, value):
        if isinstance(value, str):
            return normalize_identifier(value)
        return value


class StageChangeOut(BaseModel):
    application: ApplicationOut
    record: StageHistoryOut
    changed: bool
