# backend/crowdguard/services/incident_service.py
from __future__ import annotations

import logging
from typing import List

from fastapi.concurrency import run_in_threadpool

from crowdguard.db.dynamo import DynamoStore
from crowdguard.models.comment import Comment, CommentIn
from crowdguard.models.incident import VERIFY_THRESHOLD, Incident
from crowdguard.realtime.broadcaster import Broadcaster
from crowdguard.realtime.events import IncidentUpdated, NewComment, NewIncident

log = logging.getLogger(__name__)


class IncidentNotFound(LookupError):
    pass


def should_verify(incident: Incident) -> bool:
    return not incident.verified and incident.upvotes >= VERIFY_THRESHOLD


# Every mutation persists first and only then broadcasts the stored record,
# so a store failure never reaches the realtime channel.

async def report_incident(store: DynamoStore, broadcaster: Broadcaster, incident: Incident) -> Incident:
    # verified follows upvotes, whatever the caller sent
    incident = incident.model_copy(update={"verified": incident.upvotes >= VERIFY_THRESHOLD})
    stored = await run_in_threadpool(store.create_incident, incident)
    log.info("Incident %s (%s) reported by %s", stored.id, stored.type, stored.reporter_id)
    await broadcaster.broadcast(NewIncident(stored))
    return stored


async def upvote_incident(store: DynamoStore, broadcaster: Broadcaster, incident_id: str) -> Incident:
    updated = await run_in_threadpool(store.increment_upvotes, incident_id)
    if updated is None:
        raise IncidentNotFound(incident_id)
    if should_verify(updated):
        updated = await run_in_threadpool(store.mark_verified, incident_id)
        log.info("Incident %s verified at %d upvotes", incident_id, updated.upvotes)
    await broadcaster.broadcast(IncidentUpdated(updated))
    return updated


async def list_incidents(store: DynamoStore) -> List[Incident]:
    return await run_in_threadpool(store.list_incidents)


async def list_comments(store: DynamoStore, incident_id: str) -> List[Comment]:
    return await run_in_threadpool(store.list_comments, incident_id)


async def add_comment(
    store: DynamoStore,
    broadcaster: Broadcaster,
    incident_id: str,
    body: CommentIn,
) -> Comment:
    comment = Comment(
        id=body.id,
        incident_id=incident_id,
        user_id=body.user_id,
        user_name=body.user_name,
        text=body.text,
        timestamp=body.timestamp,
    )
    stored = await run_in_threadpool(store.create_comment, comment)
    await broadcaster.broadcast(NewComment(stored))
    return stored
