# backend/crowdguard/models/user.py
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from crowdguard.models.incident import CamelModel


# ---------- PUBLIC MODELS ----------

class UserIn(BaseModel):
    # what the frontend sends when it first opens the app
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    avatar: Optional[str] = None


class User(CamelModel):
    id: str
    name: str
    avatar: Optional[str] = None
    points: int = 0
    badges: List[str] = Field(default_factory=lambda: ["Newcomer"])
    rank: Optional[int] = None


class Responder(CamelModel):
    id: str
    name: str
    type: Literal["police", "medical", "volunteer"] = "police"
    distance: str
    eta: str


# ---------- SEED DATA ----------

SEED_USERS: List[User] = [
    User(
        id="u1",
        name="Alex Chen",
        rank=1,
        points=2450,
        badges=["Guardian", "First Responder", "Top Reporter"],
        avatar="https://api.dicebear.com/7.x/avataaars/svg?seed=Alex",
    ),
    User(
        id="u2",
        name="Sarah Jones",
        rank=2,
        points=1980,
        badges=["Scout", "Helper"],
        avatar="https://api.dicebear.com/7.x/avataaars/svg?seed=Sarah",
    ),
    User(
        id="u3",
        name="Mike Ross",
        rank=3,
        points=1850,
        badges=["Watcher"],
        avatar="https://api.dicebear.com/7.x/avataaars/svg?seed=Mike",
    ),
]
