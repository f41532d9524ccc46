from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from crowdguard.models.incident import CamelModel


class LocationIn(BaseModel):
    # the browser client sends extra fields sometimes; only coordinates matter
    model_config = ConfigDict(extra="ignore")

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class SosAlertIn(CamelModel):
    user_id: str = Field(..., min_length=1)
    location: LocationIn
