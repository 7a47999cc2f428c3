# ruff: noqa: INP001
"""In-memory stand-in for the handful of Redis commands the queue helpers use."""

from __future__ import annotations


class FakeRedis:
    def __init__(self) -> None:
        self.lists: dict[str, list[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}

    def lpush(self, key: str, *values: str) -> int:
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    def rpop(self, key: str) -> str | None:
        items = self.lists.get(key)
        if not items:
            return None
        return items.pop()

    def zadd(self, key: str, mapping: dict[str, float]) -> int:
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    def zrem(self, key: str, *members: str) -> int:
        zset = self.zsets.get(key, {})
        removed = 0
        for member in members:
            if zset.pop(member, None) is not None:
                removed += 1
        return removed

    def zrangebyscore(
        self,
        key: str,
        min_score: float | str,
        max_score: float | str,
        start: int | None = None,
        num: int | None = None,
        withscores: bool = False,
    ) -> list[object]:
        low, high = float(min_score), float(max_score)
        members = sorted(
            (score, member)
            for member, score in self.zsets.get(key, {}).items()
            if low <= score <= high
        )
        if start is not None and num is not None:
            members = members[start : start + num]
        if withscores:
            return [(member, score) for score, member in members]
        return [member for _, member in members]
