from __future__ import annotations

import math
import time
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol

MAX_ENTRIES = 100
MAX_NAME_LENGTH = 50


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    name: str
    score: int
    total_time: float  # seconds
    created_at: str  # ISO-8601 UTC

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "totalTime": self.total_time,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: object) -> "LeaderboardEntry | None":
        if not isinstance(data, dict):
            return None
        score = data.get("score")
        total_time = data.get("totalTime")
        if not _is_number(score) or not _is_number(total_time):
            return None
        return cls(
            name=str(data.get("name", "")),
            score=score,  # type: ignore[arg-type]
            total_time=total_time,  # type: ignore[arg-type]
            created_at=str(data.get("createdAt", "")),
        )


class LeaderboardStore(Protocol):
    """Read/sorted-write contract shared by every leaderboard backend."""

    def read_all(self) -> list[LeaderboardEntry]: ...
    def write_all(self, entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]: ...
    def add(self, entry: LeaderboardEntry) -> list[LeaderboardEntry]: ...


def sort_and_trim(entries: Iterable[LeaderboardEntry], *, limit: int = MAX_ENTRIES) -> list[LeaderboardEntry]:
    """Highest score first, faster time breaking ties; at most ``limit`` entries."""

    ordered = sorted(entries, key=lambda e: (-e.score, e.total_time))
    return ordered[:limit]


def make_entry(*, name: str, score: int, total_time: float, created_at: str | None = None) -> LeaderboardEntry:
    return LeaderboardEntry(
        name=str(name)[:MAX_NAME_LENGTH],
        score=score,
        total_time=total_time,
        created_at=created_at or utc_now_iso(),
    )


def entries_from_payload(payload: object) -> list[LeaderboardEntry]:
    if not isinstance(payload, list):
        return []
    out: list[LeaderboardEntry] = []
    for item in payload:
        entry = LeaderboardEntry.from_dict(item)
        if entry is not None:
            out.append(entry)
    return out


def utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
