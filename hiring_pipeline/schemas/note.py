from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class NoteCreate(BaseModel):
    content: str = Field(min_length=1)


class NoteOut(BaseModel):
    note_id: int
    application_id: int
    author: Optional[str] = None
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class EmailLogOut(BaseModel):
    email_log_id: int
    application_id: int
    recipient: Optional[str] = None
    template_key: str
    subject: Optional[str] = None
    error: Optional[str] = None
    meta_json: Optional[Dict[str, Any]] = None
    sent_at: datetime

    class Config:
        from_attributes = True
