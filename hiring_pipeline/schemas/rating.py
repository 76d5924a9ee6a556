from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RatingUpdate(BaseModel):
    rating: int = Field(ge=1, le=5)


class RatingHistoryOut(BaseModel):
    rating_history_id: int
    application_id: int
    previous_rating: Optional[int] = None
    rating: Optional[int] = None
    changed_by: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True
