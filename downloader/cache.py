"""
In-memory bag of fetched bodies shared by all download tasks of one run.
"""

import threading
from collections import Counter
from typing import List


class ResultCache:
    """Unordered multiset of response bodies.

    Appends take the cache's own lock, so they are safe whether the writers
    are asyncio tasks or threads, and independent of the admission gate.
    There is no removal and no lookup by key.
    """

    def __init__(self):
        self._items: List[str] = []
        self._lock = threading.Lock()

    def add(self, body: str) -> int:
        """Append ``body`` and return the cache size right after the append."""
        with self._lock:
            self._items.append(body)
            return len(self._items)

    def count(self, body: str) -> int:
        with self._lock:
            return self._items.count(body)

    def snapshot(self) -> Counter:
        """Return the current contents as a Counter (order is not meaningful)."""
        with self._lock:
            return Counter(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, body) -> bool:
        with self._lock:
            return body in self._items
