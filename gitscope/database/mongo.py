from __future__ import annotations

"""
MongoDB connection helpers.
"""

from pymongo import MongoClient
from pymongo.database import Database

from gitscope.config import settings

_client: MongoClient | None = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(settings.MONGODB_URI, tz_aware=True)
    return _client


def get_database() -> Database:
    client = get_client()
    return client[settings.MONGODB_DB_NAME]


def close_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
