# backend/crowdguard/models/incident.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Upvotes needed before a report counts as verified
VERIFY_THRESHOLD = 5

IncidentType = Literal["theft", "assault", "harassment", "accident", "suspicious", "other"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    # wire names are camelCase (reporterId, imageUrl, ...), attributes stay snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Incident(CamelModel):
    # id is chosen by the reporting client so its optimistic copy and the
    # broadcast echo share the same key
    id: str = Field(..., min_length=1, description="Client-generated record id")
    type: IncidentType = Field(..., description="Incident category (lowercase)")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    description: str
    address: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow, description="UTC creation time")
    verified: bool = False
    reporter_id: str
    upvotes: int = Field(0, ge=0)
    severity: Optional[int] = Field(1, ge=1, le=5)
    image_url: Optional[str] = None

