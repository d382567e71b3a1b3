from __future__ import annotations

from typing import Any, List

from pymongo import ReturnDocument

from .db import db
from .models import SessionState
from .utils import now_ts


class EventStore:
    """Persist quiz events so clients can poll via HTTP."""

    def __init__(self, database: Any = None):
        database = database or db
        self.counters_collection = database.session_event_counters
        self.events_collection = database.session_events

    async def append(self, quiz_id: str, payload: dict[str, Any]) -> int:
        """Store a new event for a quiz and return its sequence number."""

        counter_doc = await self.counters_collection.find_one_and_update(
            {"_id": quiz_id},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

        if not counter_doc:
            # Some Mongo-compatible providers complete the upsert but return
            # ``None`` instead of the updated document.
            counter_doc = await self.counters_collection.find_one({"_id": quiz_id})

        if not counter_doc or "seq" not in counter_doc:
            counter_doc = {"seq": 1}
            await self.counters_collection.update_one(
                {"_id": quiz_id},
                {"$set": counter_doc},
                upsert=True,
            )

        seq = int(counter_doc.get("seq", 1))

        await self.events_collection.insert_one(
            {
                "quiz_id": quiz_id,
                "seq": seq,
                "timestamp": now_ts(),
                "payload": payload,
            }
        )
        return seq

    async def append_state(self, quiz_id: str, state: SessionState) -> int:
        return await self.append(quiz_id, {"type": "state", "state": state.model_dump(mode="json")})

    async def list(self, quiz_id: str, after: int | None = None, limit: int = 200) -> List[dict[str, Any]]:
        """Return events for a quiz that occur after the given sequence."""

        query: dict[str, Any] = {"quiz_id": quiz_id}
        if after is not None:
            query["seq"] = {"$gt": after}

        cursor = (
            self.events_collection.find(query)
            .sort("seq", 1)
            .limit(limit)
        )

        events: List[dict[str, Any]] = []
        async for doc in cursor:
            events.append(
                {
                    "seq": doc["seq"],
                    "timestamp": doc.get("timestamp"),
                    "payload": doc.get("payload", {}),
                }
            )
        return events

    async def reset(self, quiz_id: str) -> None:
        """Clear stored events for a quiz and emit a reset marker."""

        await self.events_collection.delete_many({"quiz_id": quiz_id})

        # Sequence numbers keep increasing across resets.
        counter_doc = await self.counters_collection.find_one({"_id": quiz_id})
        if counter_doc is None:
            await self.counters_collection.insert_one({"_id": quiz_id, "seq": 0})

        await self.append(quiz_id, {"type": "session_reset"})

    async def drop(self, quiz_id: str) -> None:
        await self.events_collection.delete_many({"quiz_id": quiz_id})
        await self.counters_collection.delete_many({"_id": quiz_id})


event_store = EventStore()
