"""Sliding-window rate limiting backed by a table of attempt timestamps."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

from ..common.datetime_utils import ensure_aware, now_utc
from ..core.constants import DEFAULT_EXTERNAL_MAX_ATTEMPTS, DEFAULT_EXTERNAL_WINDOW_MINUTES


class RateLimitRepository(Protocol):
    def count_since(self, key: str, action: str, since: datetime) -> int:
        raise NotImplementedError

    def oldest_since(self, key: str, action: str, since: datetime) -> Optional[datetime]:
        raise NotImplementedError

    def record(self, key: str, action: str, at: datetime, *, tenant_id: Optional[str] = None) -> None:
        raise NotImplementedError

    def purge_older_than(self, before: datetime) -> int:
        raise NotImplementedError


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: Optional[int] = None


class RateLimiter:
    def __init__(
        self,
        store: RateLimitRepository,
        *,
        max_attempts: int = DEFAULT_EXTERNAL_MAX_ATTEMPTS,
        window_minutes: int = DEFAULT_EXTERNAL_WINDOW_MINUTES,
    ):
        self._store = store
        self._max_attempts = int(max_attempts)
        self._window = timedelta(minutes=int(window_minutes))

    def check(self, key: str, action: str, *, now: Optional[datetime] = None) -> RateLimitDecision:
        now = ensure_aware(now or now_utc())
        window_start = now - self._window
        count = self._store.count_since(key, action, window_start)

        if count >= self._max_attempts:
            oldest = self._store.oldest_since(key, action, window_start)
            if oldest is not None:
                retry_after = max(0, int((ensure_aware(oldest) + self._window - now).total_seconds()))
            else:
                retry_after = int(self._window.total_seconds())
            return RateLimitDecision(False, 0, retry_after)

        return RateLimitDecision(True, self._max_attempts - count - 1)

    def record(self, key: str, action: str, *, now: Optional[datetime] = None, tenant_id: Optional[str] = None) -> None:
        self._store.record(key, action, ensure_aware(now or now_utc()), tenant_id=tenant_id)

    def cleanup(self, *, older_than_minutes: int = 60, now: Optional[datetime] = None) -> int:
        now = ensure_aware(now or now_utc())
        return self._store.purge_older_than(now - timedelta(minutes=int(older_than_minutes)))
