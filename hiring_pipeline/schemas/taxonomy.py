from __future__ import annotations

from pydantic import BaseModel


class LabeledValue(BaseModel):
    value: str
    label: str


class StageRuleOut(BaseModel):
    stage: str
    label: str
    position: int
    requires_offer_status: bool
    requires_final_outcome: bool


class OutcomeRuleOut(BaseModel):
    outcome: str
    label: str
    is_rejection: bool
    valid_rejection_reasons: list[str]


class TaxonomyOut(BaseModel):
    stages: list[StageRuleOut]
    stage_statuses: list[LabeledValue]
    offer_statuses: list[LabeledValue]
    final_outcomes: list[OutcomeRuleOut]
    rejection_reasons: list[LabeledValue]
