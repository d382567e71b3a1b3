import time
from typing import Sequence

from .models import LeaderboardEntry, RankedEntry


def now_ts() -> float:
    return time.time()


def now_ms() -> int:
    return int(time.time() * 1000)


def rank_entries(entries: Sequence[LeaderboardEntry]) -> list[RankedEntry]:
    return [
        RankedEntry(
            rank=position,
            display_name=entry.display_name,
            score=entry.score,
            timestamp=entry.timestamp,
            id=entry.id,
        )
        for position, entry in enumerate(entries, start=1)
    ]
