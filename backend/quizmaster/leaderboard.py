from __future__ import annotations

import logging
from typing import Any, List

from pymongo import ASCENDING, DESCENDING

from .errors import FetchError
from .models import LeaderboardEntry, LeaderboardView
from .utils import rank_entries

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


class LeaderboardStore:
    """Append-only ranked entries kept in the remote store."""

    def __init__(self, collection: Any, *, default_limit: int = DEFAULT_LIMIT):
        self.collection = collection
        self.default_limit = default_limit

    async def submit_entry(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        """Write a new entry and return it with the store-assigned id."""
        try:
            result = await self.collection.insert_one(entry.model_dump(exclude={"id"}))
        except Exception as exc:
            raise FetchError(f"could not store leaderboard entry ({exc})") from exc

        stored = entry.model_copy(update={"id": str(result.inserted_id)})
        logger.info("Leaderboard entry %s stored (score=%d)", stored.id, stored.score)
        return stored

    async def fetch_ranked(self, limit: int) -> List[LeaderboardEntry]:
        try:
            cursor = (
                self.collection.find({})
                .sort([("score", DESCENDING), ("timestamp", ASCENDING)])
                .limit(limit)
            )
            docs = [doc async for doc in cursor]
        except Exception as exc:
            raise FetchError(f"could not read leaderboard ({exc})") from exc

        return [
            LeaderboardEntry(
                id=str(doc["_id"]) if doc.get("_id") is not None else None,
                username=doc.get("username", ""),
                score=doc.get("score", 0),
                timestamp=doc.get("timestamp", 0),
            )
            for doc in docs
        ]

    async def fetch_top(self, n: int | None = None) -> LeaderboardView:
        """Top ``n`` ranked rows. Never raises; failures come back as ``error``."""
        limit = n or self.default_limit
        try:
            entries = await self.fetch_ranked(limit)
        except FetchError as exc:
            logger.warning("Leaderboard fetch failed: %s", exc)
            return LeaderboardView(entries=[], error=f"Failed to load leaderboard: {exc}")
        return LeaderboardView(entries=rank_entries(entries))
