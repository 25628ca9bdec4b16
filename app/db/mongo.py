from __future__ import annotations

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from app.core.config import get_settings


class MongoConnection:
    """
    Lazily created Motor client. Nothing connects at import time,
    so tests and tooling can import the app without a database.
    """

    def __init__(self, uri: Optional[str] = None, db_name: Optional[str] = None):
        self._uri = uri
        self._db_name = db_name
        self._client: Optional[AsyncIOMotorClient] = None

    def connect(self) -> AsyncIOMotorClient:
        if self._client is None:
            settings = get_settings()
            self._client = AsyncIOMotorClient(self._uri or settings.mongo_uri, tz_aware=True)
        return self._client

    @property
    def db(self) -> AsyncIOMotorDatabase:
        return self.connect()[self._db_name or get_settings().mongo_db]

    @property
    def audit_collection(self) -> AsyncIOMotorCollection:
        return self.db[get_settings().audit_collection]

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


mongo = MongoConnection()
