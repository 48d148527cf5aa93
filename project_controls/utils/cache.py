import time
import hashlib
import logging
from typing import Any, Awaitable, Callable, Dict, Tuple
from functools import wraps


class Cache:
    """In-process TTL store for slow-changing reference data such as craft types"""

    def __init__(self, ttl_seconds: int = 300):
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self.ttl_seconds = ttl_seconds

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return None
        logging.debug(f"Reference cache hit: {key}")
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (time.monotonic() + self.ttl_seconds, value)

    def clear(self) -> None:
        self._entries.clear()


# Craft types change rarely; one hour
craft_type_cache = Cache(3600)


def key_fingerprint(value: str) -> str:
    """Stable short digest so secrets never appear in cache keys"""
    return hashlib.sha256(value.encode('utf-8')).hexdigest()[:12]


def async_cache(cache_instance: Cache):
    """Cache the result of an async method per owner namespace and arguments.

    The owner (first argument) contributes its `cache_namespace` attribute
    rather than its identity, so separate client instances for the same
    store and credentials share entries.
    """
    def decorator(func: Callable[..., Awaitable[Any]]):
        @wraps(func)
        async def wrapper(owner, *args, **kwargs):
            namespace = getattr(owner, 'cache_namespace', type(owner).__name__)
            cache_key = f"{namespace}:{func.__name__}:{args}:{sorted(kwargs.items())}"

            cached_result = cache_instance.get(cache_key)
            if cached_result is not None:
                return cached_result

            result = await func(owner, *args, **kwargs)
            cache_instance.set(cache_key, result)
            return result
        return wrapper
    return decorator
