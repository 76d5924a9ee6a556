from typing import Optional

from pydantic import BaseModel


class ActorContext(BaseModel):
    actor_id: str
    email: Optional[str] = None
