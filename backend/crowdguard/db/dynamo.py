# backend/crowdguard/db/dynamo.py
from __future__ import annotations

import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from crowdguard.models.comment import Comment
from crowdguard.models.incident import Incident
from crowdguard.models.user import User
from crowdguard.services.h3_utils import point_to_hex

REGION = os.getenv("AWS_REGION", "eu-north-1")
INCIDENTS_TABLE = os.getenv("INCIDENTS_TABLE", "Incidents")
COMMENTS_TABLE = os.getenv("COMMENTS_TABLE", "Comments")
COMMENTS_INCIDENT_INDEX = os.getenv("COMMENTS_INCIDENT_INDEX", "incidentId-index")
USERS_TABLE = os.getenv("USERS_TABLE", "Users")
ZONE_RESOLUTION = 9


class StoreError(Exception):
    """The document store rejected or failed a request."""


class DuplicateRecordError(StoreError):
    """A record with this id already exists."""


def convert_floats(obj):
    """
    Recursively convert float values in a dict/list to Decimal
    so that DynamoDB accepts them.
    """
    if isinstance(obj, list):
        return [convert_floats(i) for i in obj]
    elif isinstance(obj, dict):
        return {k: convert_floats(v) for k, v in obj.items()}
    elif isinstance(obj, float):
        return Decimal(str(obj))
    else:
        return obj


def convert_decimals(obj):
    """Inverse of convert_floats: integral Decimals become int, the rest float."""
    if isinstance(obj, list):
        return [convert_decimals(i) for i in obj]
    elif isinstance(obj, dict):
        return {k: convert_decimals(v) for k, v in obj.items()}
    elif isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    else:
        return obj


def _scan_all(table, **kwargs) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    lek: Optional[Dict[str, Any]] = None
    while True:
        if lek:
            kwargs["ExclusiveStartKey"] = lek
        resp = table.scan(**kwargs)
        items.extend(resp.get("Items", []))
        lek = resp.get("LastEvaluatedKey")
        if not lek:
            break
    return items


class DynamoStore:
    """
    Incidents, comments and users kept in three DynamoDB tables, all keyed by
    the record's own `id`. Comments are looked up through a GSI on incidentId.
    """

    def __init__(self, region: str = REGION, resource=None):
        dynamodb = resource or boto3.resource("dynamodb", region_name=region)
        self.incidents = dynamodb.Table(INCIDENTS_TABLE)
        self.comments = dynamodb.Table(COMMENTS_TABLE)
        self.users = dynamodb.Table(USERS_TABLE)

    # ---------------- Incidents ----------------
    def list_incidents(self) -> List[Incident]:
        try:
            items = _scan_all(self.incidents)
        except (BotoCoreError, ClientError) as e:
            raise StoreError("Failed to fetch incidents") from e
        incidents = [Incident.model_validate(convert_decimals(it)) for it in items]
        incidents.sort(key=lambda inc: inc.timestamp, reverse=True)
        return incidents

    def create_incident(self, incident: Incident) -> Incident:
        item = convert_floats(incident.to_wire())
        # H3 cell for zone-level queries; not part of the wire record
        item["zone_id"] = point_to_hex(incident.latitude, incident.longitude, ZONE_RESOLUTION)
        try:
            self.incidents.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise DuplicateRecordError(f"Incident {incident.id} already exists") from e
            raise StoreError("Failed to create incident") from e
        except BotoCoreError as e:
            raise StoreError("Failed to create incident") from e
        return incident

    def increment_upvotes(self, incident_id: str) -> Optional[Incident]:
        """Atomically add one upvote. Returns the updated record, or None if unknown."""
        try:
            resp = self.incidents.update_item(
                Key={"id": incident_id},
                UpdateExpression="ADD upvotes :one",
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeValues={":one": 1},
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return None
            raise StoreError(f"Failed to upvote incident {incident_id}") from e
        except BotoCoreError as e:
            raise StoreError(f"Failed to upvote incident {incident_id}") from e
        return Incident.model_validate(convert_decimals(resp["Attributes"]))

    def mark_verified(self, incident_id: str) -> Incident:
        try:
            resp = self.incidents.update_item(
                Key={"id": incident_id},
                UpdateExpression="SET verified = :t",
                ExpressionAttributeValues={":t": True},
                ReturnValues="ALL_NEW",
            )
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Failed to verify incident {incident_id}") from e
        return Incident.model_validate(convert_decimals(resp["Attributes"]))

    # ---------------- Comments ----------------
    def list_comments(self, incident_id: str) -> List[Comment]:
        items: List[Dict[str, Any]] = []
        lek: Optional[Dict[str, Any]] = None
        try:
            while True:
                kwargs = {
                    "IndexName": COMMENTS_INCIDENT_INDEX,
                    "KeyConditionExpression": Key("incidentId").eq(incident_id),
                }
                if lek:
                    kwargs["ExclusiveStartKey"] = lek
                resp = self.comments.query(**kwargs)
                items.extend(resp.get("Items", []))
                lek = resp.get("LastEvaluatedKey")
                if not lek:
                    break
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Failed to fetch comments for {incident_id}") from e
        comments = [Comment.model_validate(convert_decimals(it)) for it in items]
        comments.sort(key=lambda c: c.timestamp, reverse=True)
        return comments

    def create_comment(self, comment: Comment) -> Comment:
        try:
            self.comments.put_item(
                Item=convert_floats(comment.to_wire()),
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise DuplicateRecordError(f"Comment {comment.id} already exists") from e
            raise StoreError("Failed to add comment") from e
        except BotoCoreError as e:
            raise StoreError("Failed to add comment") from e
        return comment

    # ---------------- Users ----------------
    def get_user(self, user_id: str) -> Optional[User]:
        try:
            resp = self.users.get_item(Key={"id": user_id})
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Failed to read user {user_id}") from e
        item = resp.get("Item")
        return User.model_validate(convert_decimals(item)) if item else None

    def put_user(self, user: User) -> User:
        try:
            self.users.put_item(Item=convert_floats(user.to_wire()))
        except (BotoCoreError, ClientError) as e:
            raise StoreError(f"Failed to save user {user.id}") from e
        return user

    def list_users(self) -> List[User]:
        try:
            items = _scan_all(self.users)
        except (BotoCoreError, ClientError) as e:
            raise StoreError("Failed to fetch users") from e
        return [User.model_validate(convert_decimals(it)) for it in items]

    def count_users(self) -> int:
        try:
            resp = self.users.scan(Select="COUNT")
        except (BotoCoreError, ClientError) as e:
            raise StoreError("Failed to count users") from e
        return int(resp.get("Count", 0))
