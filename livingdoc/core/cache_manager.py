"""
Name cache management for LivingDoc
"""
import threading
from collections import OrderedDict
from typing import Callable, Optional


class CacheManager:
    """Bounded LRU cache for normalized names, keyed by the exact input string"""

    def __init__(self, max_size: int = 4096):
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.cache: "OrderedDict[str, str]" = OrderedDict()
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        """Get cached value"""
        with self._lock:
            if key in self.cache:
                self.cache.move_to_end(key)
                self.hits += 1
                return self.cache[key]
            self.misses += 1
            return None

    def save_cache(self, key: str, value: str):
        """Store a value, evicting the least recently used entry when full"""
        with self._lock:
            self.cache[key] = value
            self.cache.move_to_end(key)
            while len(self.cache) > self.max_size:
                self.cache.popitem(last=False)

    def get_or_compute(self, key: str, compute: Callable[[str], str]) -> str:
        value = self.get(key)
        if value is None:
            value = compute(key)
            self.save_cache(key, value)
        return value

    def clear_cache(self):
        """Clear all cache"""
        with self._lock:
            self.cache.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self.cache)
