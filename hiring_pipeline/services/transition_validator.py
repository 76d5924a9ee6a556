from __future__ import annotations

from dataclasses import dataclass, field

from hiring_pipeline.core.errors import (
    DiscardedApplicationImmutable,
    InvalidRejectionReason,
    MissingFinalOutcome,
    MissingOfferStatus,
    TransitionError,
    UnknownStage,
)
from hiring_pipeline.core.taxonomy import (
    FINAL_OUTCOME_LABELS,
    STAGE_ORDER,
    FinalOutcome,
    OfferStatus,
    RejectionReason,
    Stage,
    StageStatus,
    is_rejection_outcome,
    parse_stage,
    requires_final_outcome,
    requires_offer_status,
    suggested_final_outcome,
    valid_rejection_reasons,
)


@dataclass(frozen=True)
class ApplicationState:
    stage: Stage
    status: StageStatus
    offer_status: OfferStatus | None = None
    final_outcome: FinalOutcome | None = None
    rejection_reason: RejectionReason | None = None


@dataclass(frozen=True)
class ProposedChange:
    # Raw strings are accepted for the stage so unknown identifiers surface as UnknownStage.
    stage: Stage | str
    status: StageStatus
    offer_status: OfferStatus | None = None
    final_outcome: FinalOutcome | None = None
    rejection_reason: RejectionReason | None = None


@dataclass(frozen=True)
class ValidationResult:
    accepted: ApplicationState | None = None
    error: TransitionError | None = None
    missing_fields: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None and self.accepted is not None

    def unwrap(self) -> ApplicationState:
        if self.error is not None:
            raise self.error
        if self.accepted is None:
            raise ValueError("ValidationResult holds neither an accepted state nor an error")
        return self.accepted


def _missing_fields(stage: Stage, proposed: ProposedChange) -> tuple[str, ...]:
    missing: list[str] = []
    if requires_offer_status(stage) and proposed.offer_status is None:
        missing.append("offer_status")
    if requires_final_outcome(stage) and proposed.final_outcome is None:
        missing.append("final_outcome")
    return tuple(missing)


def _reject(error: TransitionError) -> ValidationResult:
    return ValidationResult(error=error, missing_fields=error.missing_fields)


def validate(current: ApplicationState, proposed: ProposedChange) -> ValidationResult:
    """Decide whether `proposed` may replace `current` as the application's state.

    Rules are checked in a fixed order and the first failure wins. The accepted tuple is the
    proposed one verbatim; nothing is carried over from `current`.
    """
    target = parse_stage(proposed.stage)
    raw_stage = proposed.stage.value if isinstance(proposed.stage, Stage) else str(proposed.stage)

    if current.status == StageStatus.DISCARDED_IN_STAGE:
        if target != current.stage:
            return _reject(
                DiscardedApplicationImmutable(
                    f"Application was discarded in '{current.stage.value}' and cannot change stage.",
                    details={"current_stage": current.stage.value, "requested_stage": raw_stage},
                )
            )
        if proposed.status != StageStatus.DISCARDED_IN_STAGE:
            return _reject(
                DiscardedApplicationImmutable(
                    "A discarded application cannot be reopened.",
                    details={"current_stage": current.stage.value, "requested_status": proposed.status.value},
                )
            )

    if target is None or target not in STAGE_ORDER:
        return _reject(
            UnknownStage(
                f"'{raw_stage}' is not a stage of the pipeline.",
                details={"requested_stage": raw_stage, "stages": [stage.value for stage in STAGE_ORDER]},
            )
        )

    missing = _missing_fields(target, proposed)

    if requires_offer_status(target) and proposed.offer_status is None:
        return _reject(
            MissingOfferStatus(
                f"offer_status is required to enter '{target.value}'.",
                details={"stage": target.value},
                missing_fields=missing,
            )
        )

    if requires_final_outcome(target) and proposed.final_outcome is None:
        details: dict[str, str] = {"stage": target.value}
        suggestion = suggested_final_outcome(proposed.offer_status)
        if suggestion is not None:
            details["suggested_final_outcome"] = suggestion.value
        return _reject(
            MissingFinalOutcome(
                f"final_outcome is required to enter '{target.value}'.",
                details=details,
                missing_fields=missing,
            )
        )

    reason = proposed.rejection_reason
    if reason is not None:
        outcome = proposed.final_outcome
        if not is_rejection_outcome(outcome):
            label = FINAL_OUTCOME_LABELS[outcome] if outcome is not None else None
            return _reject(
                InvalidRejectionReason(
                    "A rejection reason is only valid together with a rejection outcome.",
                    details={
                        "rejection_reason": reason.value,
                        "final_outcome": outcome.value if outcome is not None else None,
                        "final_outcome_label": label,
                    },
                )
            )
        allowed = valid_rejection_reasons(outcome)
        if reason not in allowed:
            return _reject(
                InvalidRejectionReason(
                    f"'{reason.value}' is not a valid reason for '{outcome.value}'.",
                    details={
                        "rejection_reason": reason.value,
                        "final_outcome": outcome.value,
                        "allowed": sorted(item.value for item in allowed),
                    },
                )
            )

    return ValidationResult(
        accepted=ApplicationState(
            stage=target,
            status=proposed.status,
            offer_status=proposed.offer_status,
            final_outcome=proposed.final_outcome,
            rejection_reason=proposed.rejection_reason,
        )
    )
