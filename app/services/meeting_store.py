from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from app.schemas.meeting import MeetingStatus


class MeetingStoreError(Exception):
    pass


class MeetingStore(ABC):
    @abstractmethod
    def find_by_meeting_id(self, meeting_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def upsert_by_meeting_id(self, meeting_id: str, updates: Mapping[str, Any]) -> dict[str, Any]:
        raise NotImplementedError


class InMemoryMeetingStore(MeetingStore):
    def __init__(self) -> None:
        self._records_by_meeting_id: dict[str, dict[str, Any]] = {}

    def find_by_meeting_id(self, meeting_id: str) -> dict[str, Any] | None:
        record = self._records_by_meeting_id.get(meeting_id)
        if not record:
            return None
        return dict(record)

    def upsert_by_meeting_id(self, meeting_id: str, updates: Mapping[str, Any]) -> dict[str, Any]:
        now = _utc_now_iso()
        record = self._records_by_meeting_id.get(meeting_id)
        if record is None:
            record = {"meetingId": meeting_id, **_insert_defaults(updates, now)}
            self._records_by_meeting_id[meeting_id] = record
        record.update(dict(updates))
        record["meetingId"] = meeting_id
        record["updatedAt"] = now
        return dict(record)


class MongoMeetingStore(MeetingStore):
    def __init__(
        self,
        uri: str,
        db_name: str,
        collection_name: str,
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import MongoClient
        from pymongo.errors import PyMongoError

        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
        )
        self._collection = self._client[db_name][collection_name]
        try:
            self._collection.create_index([("meetingId", 1)], unique=True)
        except PyMongoError as exc:
            raise MeetingStoreError(f"Meeting store initialization failed: {exc}") from exc

    def find_by_meeting_id(self, meeting_id: str) -> dict[str, Any] | None:
        from pymongo.errors import PyMongoError

        try:
            return self._collection.find_one({"meetingId": meeting_id}, projection={"_id": False})
        except PyMongoError as exc:
            raise MeetingStoreError(f"Meeting lookup failed: {exc}") from exc

    def upsert_by_meeting_id(self, meeting_id: str, updates: Mapping[str, Any]) -> dict[str, Any]:
        from pymongo import ReturnDocument
        from pymongo.errors import PyMongoError

        now = _utc_now_iso()
        set_fields = {key: value for key, value in updates.items() if key != "meetingId"}
        set_fields["updatedAt"] = now
        try:
            record = self._collection.find_one_and_update(
                {"meetingId": meeting_id},
                {
                    "$set": set_fields,
                    "$setOnInsert": _insert_defaults(updates, now),
                },
                upsert=True,
                projection={"_id": False},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise MeetingStoreError(f"Meeting upsert failed: {exc}") from exc
        return dict(record or {})


def create_meeting_store(
    store_name: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_collection_name: str,
    mongodb_connect_timeout_ms: int,
) -> MeetingStore:
    return _create_meeting_store_cached(
        store_name=store_name,
        mongodb_uri=mongodb_uri,
        mongodb_db_name=mongodb_db_name,
        mongodb_collection_name=mongodb_collection_name,
        mongodb_connect_timeout_ms=mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_meeting_store_cached(
    store_name: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_collection_name: str,
    mongodb_connect_timeout_ms: int,
) -> MeetingStore:
    if store_name == "memory":
        return InMemoryMeetingStore()

    if store_name == "mongodb":
        return MongoMeetingStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            collection_name=mongodb_collection_name,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    raise MeetingStoreError(f"Unsupported meetings store: {store_name!r}")


def clear_meeting_store_cache() -> None:
    _create_meeting_store_cached.cache_clear()


def _insert_defaults(updates: Mapping[str, Any], now: str) -> dict[str, Any]:
    defaults: dict[str, Any] = {
        "status": MeetingStatus.join_requested.value,
        "createdAt": now,
    }
    # $setOnInsert must not touch fields that $set already writes.
    return {key: value for key, value in defaults.items() if key not in updates}


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")
