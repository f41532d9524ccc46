from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from crowdguard.models.incident import CamelModel, _utcnow


class CommentIn(CamelModel):
    # incidentId in the body is optional; the route path wins
    id: str = Field(..., min_length=1)
    incident_id: Optional[str] = None
    user_id: str
    user_name: str
    text: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=_utcnow)


class Comment(CamelModel):
    id: str
    incident_id: str
    user_id: str
    user_name: str
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)
