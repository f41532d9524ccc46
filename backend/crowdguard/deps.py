from functools import lru_cache

from fastapi import Request

from crowdguard.db.dynamo import DynamoStore
from crowdguard.realtime.broadcaster import Broadcaster


@lru_cache(maxsize=1)
def get_store() -> DynamoStore:
    return DynamoStore()


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster
