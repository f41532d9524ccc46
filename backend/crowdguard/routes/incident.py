from typing import List

from fastapi import APIRouter, Depends, HTTPException

from crowdguard.db.dynamo import DuplicateRecordError, DynamoStore, StoreError
from crowdguard.deps import get_broadcaster, get_store
from crowdguard.models.comment import Comment, CommentIn
from crowdguard.models.incident import Incident
from crowdguard.realtime.broadcaster import Broadcaster
from crowdguard.services import incident_service

router = APIRouter(prefix="/api/incidents", tags=["incident"])


@router.get("", response_model=List[Incident])
async def get_incidents(store: DynamoStore = Depends(get_store)):
    try:
        return await incident_service.list_incidents(store)
    except StoreError:
        raise HTTPException(status_code=500, detail="Failed to fetch incidents")


@router.post("", response_model=Incident, status_code=201)
async def create_incident(
    incident: Incident,
    store: DynamoStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """
    Persist a report, then push the stored record to every connected client
    (the submitter included; it dedupes against its optimistic copy).
    """
    try:
        return await incident_service.report_incident(store, broadcaster, incident)
    except DuplicateRecordError:
        raise HTTPException(status_code=409, detail="Incident already exists")
    except StoreError:
        raise HTTPException(status_code=500, detail="Failed to create incident")


@router.post("/{incident_id}/upvote", response_model=Incident)
async def upvote_incident(
    incident_id: str,
    store: DynamoStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    try:
        return await incident_service.upvote_incident(store, broadcaster, incident_id)
    except incident_service.IncidentNotFound:
        raise HTTPException(status_code=404, detail="Incident not found")
    except StoreError:
        raise HTTPException(status_code=500, detail="Failed to upvote incident")


@router.get("/{incident_id}/comments", response_model=List[Comment])
async def get_comments(incident_id: str, store: DynamoStore = Depends(get_store)):
    try:
        return await incident_service.list_comments(store, incident_id)
    except StoreError:
        raise HTTPException(status_code=500, detail="Failed to fetch comments")


@router.post("/{incident_id}/comments", response_model=Comment, status_code=201)
async def add_comment(
    incident_id: str,
    body: CommentIn,
    store: DynamoStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    try:
        return await incident_service.add_comment(store, broadcaster, incident_id, body)
    except DuplicateRecordError:
        raise HTTPException(status_code=409, detail="Comment already exists")
    except StoreError:
        raise HTTPException(status_code=500, detail="Failed to add comment")
