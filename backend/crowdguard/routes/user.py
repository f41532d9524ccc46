from typing import List

from fastapi import APIRouter, Depends, HTTPException

from crowdguard.db.dynamo import DynamoStore, StoreError
from crowdguard.deps import get_store
from crowdguard.models.user import User, UserIn
from crowdguard.services import user_service

router = APIRouter(prefix="/api", tags=["user"])


@router.post("/users", response_model=User, summary="Create the user if unknown, else return it")
def create_or_fetch_user(body: UserIn, store: DynamoStore = Depends(get_store)):
    try:
        return user_service.get_or_create_user(store, body)
    except StoreError:
        raise HTTPException(status_code=500, detail="Failed to create/fetch user")


@router.get("/leaderboard", response_model=List[User])
def get_leaderboard(store: DynamoStore = Depends(get_store)):
    try:
        return user_service.leaderboard(store)
    except StoreError:
        raise HTTPException(status_code=500, detail="Failed to fetch leaderboard")
