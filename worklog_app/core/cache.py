"""Short-lived in-memory caches keyed by credential identity."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

from .config import SETTINGS, AppSettings
from .models import Credentials

Clock = Callable[[], float]


class TTLCache:
    """Mapping of key -> (inserted_at, value) with time-boxed reads.

    Stale entries are only dropped when overwritten or when ``maxsize`` forces
    an LRU eviction; reads of a stale entry behave as misses.
    """

    def __init__(self, ttl: float, *, maxsize: int | None = None, clock: Clock = time.monotonic):
        if maxsize is not None and maxsize < 1:
            raise ValueError("maxsize must be positive")
        self.ttl = float(ttl)
        self.maxsize = maxsize
        self._clock = clock
        self._data: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            inserted_at, value = entry
            if self._clock() - inserted_at >= self.ttl:
                return None
            self._data.move_to_end(key)
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._data[key] = (self._clock(), value)
            self._data.move_to_end(key)
            if self.maxsize is not None:
                while len(self._data) > self.maxsize:
                    self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


def report_cache_key(
    credentials: Credentials,
    report_type: str,
    scope_id: str | int,
    start_date: str,
    end_date: str,
) -> str:
    return f"{credentials.cache_key}:{report_type}:{scope_id}:{start_date}:{end_date}"


@dataclass(slots=True)
class ServiceCaches:
    users: TTLCache
    reports: TTLCache
    projects: TTLCache
    boards: TTLCache

    @classmethod
    def create(cls, settings: AppSettings | None = None, *, clock: Clock = time.monotonic) -> ServiceCaches:
        settings = settings or SETTINGS

        def _make() -> TTLCache:
            return TTLCache(settings.cache_ttl, maxsize=settings.cache_maxsize, clock=clock)

        return cls(users=_make(), reports=_make(), projects=_make(), boards=_make())

    def clear(self) -> None:
        for cache in (self.users, self.reports, self.projects, self.boards):
            cache.clear()
