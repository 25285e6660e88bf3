from collections import namedtuple
from copy import deepcopy
from flask import current_app
import time

CacheEntry = namedtuple('CacheEntry', ['data', 'timestamp', 'ttl'])


class QueryCache:
    """
    In-memory key/value cache with a per-entry time to live (in seconds).

    Expired entries are only evicted when they are read; there is no background
    sweep and no size bound. Entries are replaced wholesale on ``set``; values
    are copied in and out so callers never share the cached object.
    """

    def __init__(self, default_ttl=60, clock=time.monotonic):
        self.default_ttl = default_ttl
        self.clock = clock
        self._entries = {}

    def get(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self.clock() - entry.timestamp > entry.ttl:
            self._entries.pop(key, None)
            return None

        return deepcopy(entry.data)

    def set(self, key, data, ttl=None):
        if ttl is None:
            ttl = self.default_ttl
        self._entries[key] = CacheEntry(deepcopy(data), self.clock(), ttl)

    def invalidate(self, key):
        """
        Remove an exact key, or every key starting with it when no exact match exists
        """
        if key in self._entries:
            del self._entries[key]
            return

        for cached_key in [k for k in self._entries if k.startswith(key)]:
            del self._entries[cached_key]

    def invalidate_all(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return self.get(key) is not None


def get_query_cache():
    return current_app.extensions['query_cache']
