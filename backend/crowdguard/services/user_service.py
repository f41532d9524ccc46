from __future__ import annotations

import logging
from typing import List

from crowdguard.db.dynamo import DynamoStore
from crowdguard.models.user import SEED_USERS, User, UserIn

log = logging.getLogger(__name__)

LEADERBOARD_SIZE = 10


def get_or_create_user(store: DynamoStore, body: UserIn) -> User:
    user = store.get_user(body.id)
    if user is None:
        user = store.put_user(User(id=body.id, name=body.name, avatar=body.avatar))
        log.info("Created user %s", user.id)
    return user


def leaderboard(store: DynamoStore, size: int = LEADERBOARD_SIZE) -> List[User]:
    users = sorted(store.list_users(), key=lambda u: u.points, reverse=True)[:size]
    return [u.model_copy(update={"rank": i}) for i, u in enumerate(users, start=1)]


def seed_users(store: DynamoStore) -> int:
    """Insert the demo users when the table is empty. Returns how many were written."""
    if store.count_users() > 0:
        return 0
    log.info("Seeding initial users...")
    for user in SEED_USERS:
        store.put_user(user)
    return len(SEED_USERS)
