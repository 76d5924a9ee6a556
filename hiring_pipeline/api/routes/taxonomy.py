from __future__ import annotations

from fastapi import APIRouter

from hiring_pipeline.core.taxonomy import (
    FINAL_OUTCOME_LABELS,
    OFFER_STATUS_LABELS,
    REJECTION_REASON_LABELS,
    STAGE_LABELS,
    STAGE_ORDER,
    STAGE_STATUS_LABELS,
    is_rejection_outcome,
    requires_final_outcome,
    requires_offer_status,
    valid_rejection_reasons,
)
from hiring_pipeline.schemas.taxonomy import LabeledValue, OutcomeRuleOut, StageRuleOut, TaxonomyOut

router = APIRouter(prefix="/pipeline", tags=["taxonomy"])


@router.get("/taxonomy", response_model=TaxonomyOut)
async def get_taxonomy():
    return TaxonomyOut(
        stages=[
            StageRuleOut(
                stage=stage.value,
                label=STAGE_LABELS[stage],
                position=index,
                requires_offer_status=requires_offer_status(stage),
                requires_final_outcome=requires_final_outcome(stage),
            )
            for index, stage in enumerate(STAGE_ORDER)
        ],
        stage_statuses=[LabeledValue(value=item.value, label=label) for item, label in STAGE_STATUS_LABELS.items()],
        offer_statuses=[LabeledValue(value=item.value, label=label) for item, label in OFFER_STATUS_LABELS.items()],
        final_outcomes=[
            OutcomeRuleOut(
                outcome=outcome.value,
                label=label,
                is_rejection=is_rejection_outcome(outcome),
                valid_rejection_reasons=sorted(reason.value for reason in valid_rejection_reasons(outcome)),
            )
            for outcome, label in FINAL_OUTCOME_LABELS.items()
        ],
        rejection_reasons=[
            LabeledValue(value=item.value, label=label) for item, label in REJECTION_REASON_LABELS.items()
        ],
    )
