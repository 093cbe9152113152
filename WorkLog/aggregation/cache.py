# WorkLog/aggregation/cache.py

import logging
from collections import OrderedDict
from typing import Any, Hashable, Optional

log = logging.getLogger(__name__)


class ComparisonCache:
    """
    Bounded LRU cache for classifier answers within one aggregation run.

    The engine owns one instance and hands it to the oracle; nothing is
    kept at module level. Oldest entries are evicted once `max_size` is
    reached.
    """

    def __init__(self, max_size: int = 4096):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._data: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        if key in self._data:
            self._data.move_to_end(key)
            self.hits += 1
            return self._data[key]
        self.misses += 1
        return None

    def put(self, key: Hashable, value: Any) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.max_size:
            evicted, _ = self._data.popitem(last=False)
            log.debug(f"Evicted cached comparison {evicted!r}")

    def clear(self) -> None:
        self._data.clear()
        self.hits = 0
        self.misses = 0

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
