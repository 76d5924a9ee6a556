from hiring_pipeline.db.base import Base
from hiring_pipeline.models.application import PipelineApplication
from hiring_pipeline.models.email_log import PipelineEmailLog
from hiring_pipeline.models.rating_history import PipelineRatingHistory
from hiring_pipeline.models.recruiter_note import PipelineRecruiterNote
from hiring_pipeline.models.stage_history import PipelineStageHistory

__all__ = [
    "Base",
    "PipelineApplication",
    "PipelineEmailLog",
    "PipelineRatingHistory",
    "PipelineRecruiterNote",
    "PipelineStageHistory",
]
