from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    CV_RECEIVED = "CV_RECEIVED"
    HR_REVIEW = "HR_REVIEW"
    # Retired from the pipeline; kept so legacy payloads parse and get rejected as unknown.
    FILTER_QUESTIONS = "FILTER_QUESTIONS"
    HR_INTERVIEW = "HR_INTERVIEW"
    LEAD_INTERVIEW = "LEAD_INTERVIEW"
    EO_INTERVIEW = "EO_INTERVIEW"
    REFERENCES_CHECK = "REFERENCES_CHECK"
    SELECTED_FOR_OFFER = "SELECTED_FOR_OFFER"
    OFFER = "OFFER"
    CLOSED = "CLOSED"


class StageStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    DISCARDED_IN_STAGE = "DISCARDED_IN_STAGE"


class OfferStatus(str, Enum):
    PENDING_TO_SEND = "PENDING_TO_SEND"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED_BY_CANDIDATE = "REJECTED_BY_CANDIDATE"
    WITHDRAWN_BY_POW = "WITHDRAWN_BY_POW"
    EXPIRED = "EXPIRED"


class FinalOutcome(str, Enum):
    HIRED = "HIRED"
    REJECTED_BY_POW = "REJECTED_BY_POW"
    REJECTED_BY_CANDIDATE = "REJECTED_BY_CANDIDATE"
    ROLE_CANCELLED = "ROLE_CANCELLED"
    TALENT_POOL = "TALENT_POOL"


class RejectionReason(str, Enum):
    TECH_SKILLS_INSUFFICIENT = "TECH_SKILLS_INSUFFICIENT"
    CULTURAL_MISFIT = "CULTURAL_MISFIT"
    SALARY_EXPECTATION_ABOVE_RANGE = "SALARY_EXPECTATION_ABOVE_RANGE"
    LACK_OF_EXPERIENCE = "LACK_OF_EXPERIENCE"
    SOFT_SKILLS_MISMATCH = "SOFT_SKILLS_MISMATCH"
    NO_SHOW = "NO_SHOW"
    ACCEPTED_OTHER_OFFER = "ACCEPTED_OTHER_OFFER"
    SALARY_TOO_LOW = "SALARY_TOO_LOW"
    BENEFITS_INSUFFICIENT = "BENEFITS_INSUFFICIENT"
    MODALITY_NOT_ACCEPTED = "MODALITY_NOT_ACCEPTED"
    LOCATION_ISSUE = "LOCATION_ISSUE"
    PERSONAL_REASON = "PERSONAL_REASON"
    PROCESS_TAKES_TOO_LONG = "PROCESS_TAKES_TOO_LONG"
    OTHER = "OTHER"


# Canonical pipeline order. Every transition target must be a member.
STAGE_ORDER: tuple[Stage, ...] = (
    Stage.CV_RECEIVED,
    Stage.HR_REVIEW,
    Stage.HR_INTERVIEW,
    Stage.LEAD_INTERVIEW,
    Stage.EO_INTERVIEW,
    Stage.REFERENCES_CHECK,
    Stage.SELECTED_FOR_OFFER,
    Stage.OFFER,
    Stage.CLOSED,
)

FIRST_STAGE: Stage = STAGE_ORDER[0]

OFFER_BEARING_STAGES: frozenset[Stage] = frozenset({Stage.OFFER, Stage.CLOSED})
FINAL_OUTCOME_STAGES: frozenset[Stage] = frozenset({Stage.CLOSED})

REJECTION_OUTCOMES: frozenset[FinalOutcome] = frozenset(
    {FinalOutcome.REJECTED_BY_POW, FinalOutcome.REJECTED_BY_CANDIDATE}
)

VALID_REJECTION_REASONS: dict[FinalOutcome, frozenset[RejectionReason]] = {
    FinalOutcome.REJECTED_BY_POW: frozenset(
        {
            RejectionReason.TECH_SKILLS_INSUFFICIENT,
            RejectionReason.CULTURAL_MISFIT,
            RejectionReason.SALARY_EXPECTATION_ABOVE_RANGE,
            RejectionReason.LACK_OF_EXPERIENCE,
            RejectionReason.SOFT_SKILLS_MISMATCH,
            RejectionReason.NO_SHOW,
            RejectionReason.OTHER,
        }
    ),
    FinalOutcome.REJECTED_BY_CANDIDATE: frozenset(
        {
            RejectionReason.ACCEPTED_OTHER_OFFER,
            RejectionReason.SALARY_TOO_LOW,
            RejectionReason.BENEFITS_INSUFFICIENT,
            RejectionReason.MODALITY_NOT_ACCEPTED,
            RejectionReason.LOCATION_ISSUE,
            RejectionReason.PERSONAL_REASON,
            RejectionReason.PROCESS_TAKES_TOO_LONG,
            RejectionReason.OTHER,
        }
    ),
}

_OUTCOME_FOR_OFFER_STATUS: dict[OfferStatus, FinalOutcome] = {
    OfferStatus.ACCEPTED: FinalOutcome.HIRED,
    OfferStatus.REJECTED_BY_CANDIDATE: FinalOutcome.REJECTED_BY_CANDIDATE,
    OfferStatus.WITHDRAWN_BY_POW: FinalOutcome.REJECTED_BY_POW,
}


STAGE_LABELS: dict[Stage, str] = {
    Stage.CV_RECEIVED: "CV Recibido",
    Stage.HR_REVIEW: "Revisión HR",
    Stage.FILTER_QUESTIONS: "Preguntas Filtro",
    Stage.HR_INTERVIEW: "Entrevista HR",
    Stage.LEAD_INTERVIEW: "Entrevista Líder",
    Stage.EO_INTERVIEW: "Entrevista EO/CEO",
    Stage.REFERENCES_CHECK: "Chequeo Referencias",
    Stage.SELECTED_FOR_OFFER: "Seleccionado para Oferta",
    Stage.OFFER: "Oferta",
    Stage.CLOSED: "Cerrado",
}

STAGE_STATUS_LABELS: dict[StageStatus, str] = {
    StageStatus.PENDING: "Pendiente",
    StageStatus.IN_PROGRESS: "En Progreso",
    StageStatus.ON_HOLD: "En Pausa",
    StageStatus.COMPLETED: "Completado",
    StageStatus.DISCARDED_IN_STAGE: "Descartado",
}

OFFER_STATUS_LABELS: dict[OfferStatus, str] = {
    OfferStatus.PENDING_TO_SEND: "Pendiente de Envío",
    OfferStatus.SENT: "Enviada",
    OfferStatus.ACCEPTED: "Aceptada",
    OfferStatus.REJECTED_BY_CANDIDATE: "Rechazada por Candidato",
    OfferStatus.WITHDRAWN_BY_POW: "Retirada por Pow",
    OfferStatus.EXPIRED: "Expirada",
}

FINAL_OUTCOME_LABELS: dict[FinalOutcome, str] = {
    FinalOutcome.HIRED: "Contratado",
    FinalOutcome.REJECTED_BY_POW: "Rechazado por Pow",
    FinalOutcome.REJECTED_BY_CANDIDATE: "Rechazado por Candidato",
    FinalOutcome.ROLE_CANCELLED: "Búsqueda Cancelada",
    FinalOutcome.TALENT_POOL: "Banco de Talento",
}

REJECTION_REASON_LABELS: dict[RejectionReason, str] = {
    RejectionReason.TECH_SKILLS_INSUFFICIENT: "Habilidades técnicas insuficientes",
    RejectionReason.CULTURAL_MISFIT: "No encaja culturalmente",
    RejectionReason.SALARY_EXPECTATION_ABOVE_RANGE: "Expectativa salarial fuera de rango",
    RejectionReason.LACK_OF_EXPERIENCE: "Falta de experiencia",
    RejectionReason.SOFT_SKILLS_MISMATCH: "Habilidades blandas no coinciden",
    RejectionReason.NO_SHOW: "No se presentó",
    RejectionReason.ACCEPTED_OTHER_OFFER: "Aceptó otra oferta",
    RejectionReason.SALARY_TOO_LOW: "Salario muy bajo",
    RejectionReason.BENEFITS_INSUFFICIENT: "Beneficios insuficientes",
    RejectionReason.MODALITY_NOT_ACCEPTED: "Modalidad no aceptada",
    RejectionReason.LOCATION_ISSUE: "Problema de ubicación",
    RejectionReason.PERSONAL_REASON: "Razón personal",
    RejectionReason.PROCESS_TAKES_TOO_LONG: "Proceso muy largo",
    RejectionReason.OTHER: "Otro",
}


def normalize_identifier(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip().upper().replace(" ", "_").replace("-", "_")
    if not normalized:
        return None
    return normalized


def parse_stage(raw: Stage | str | None) -> Stage | None:
    """Resolve a raw identifier to a Stage member, or None when it names no stage."""
    if isinstance(raw, Stage):
        return raw
    normalized = normalize_identifier(raw)
    if normalized is None:
        return None
    try:
        return Stage(normalized)
    except ValueError:
        return None


def is_pipeline_stage(stage: Stage | str | None) -> bool:
    return parse_stage(stage) in STAGE_ORDER


def stage_index(stage: Stage) -> int:
    return STAGE_ORDER.index(stage)


def next_stage(stage: Stage) -> Stage | None:
    if stage not in STAGE_ORDER:
        return None
    index = STAGE_ORDER.index(stage)
    if index == len(STAGE_ORDER) - 1:
        return None
    return STAGE_ORDER[index + 1]


def previous_stage(stage: Stage) -> Stage | None:
    if stage not in STAGE_ORDER:
        return None
    index = STAGE_ORDER.index(stage)
    if index == 0:
        return None
    return STAGE_ORDER[index - 1]


def requires_offer_status(stage: Stage) -> bool:
    return stage in OFFER_BEARING_STAGES


def requires_final_outcome(stage: Stage) -> bool:
    return stage in FINAL_OUTCOME_STAGES


def is_rejection_outcome(outcome: FinalOutcome | None) -> bool:
    return outcome in REJECTION_OUTCOMES


def valid_rejection_reasons(outcome: FinalOutcome | None) -> frozenset[RejectionReason]:
    if outcome is None:
        return frozenset()
    return VALID_REJECTION_REASONS.get(outcome, frozenset())


def suggested_final_outcome(offer_status: OfferStatus | None) -> FinalOutcome | None:
    if offer_status is None:
        return None
    return _OUTCOME_FOR_OFFER_STATUS.get(offer_status)
