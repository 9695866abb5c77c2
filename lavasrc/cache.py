import hashlib
import logging
import re
import time
from typing import Any, Optional

from django.core.cache import caches

from lavasrc import conf

logger = logging.getLogger(__name__)

# Spotify ids (base62) and other short, plain ids are used as-is
_PLAIN_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
# memcached rejects whitespace and control characters
_BAD_NAMESPACE = re.compile(r"[\s\x00-\x1f\x7f]")
MAX_NAMESPACE_LENGTH = 120


class TrackMetadataCache:
    """
    Bounded-lifetime metadata cache on top of the Django cache framework.

    An entry dies ``expire_after_access`` seconds after it was last read or
    ``expire_after_write`` seconds after it was stored, whichever comes first.
    ``invalidate_all`` bumps a per-namespace generation counter, so it works on
    every backend (no pattern delete needed).

    Backend failures are logged and treated as misses; nothing here raises.
    """

    def __init__(self,
                 alias: str = "default",
                 expire_after_access: int = 600,
                 expire_after_write: int = 3600,
                 namespace: str = "lavasrc:spotify:track"):
        if not namespace or len(namespace) > MAX_NAMESPACE_LENGTH or _BAD_NAMESPACE.search(namespace):
            raise ValueError(f"Invalid cache namespace: {namespace!r}")
        self.alias = alias
        self.expire_after_access = expire_after_access
        self.expire_after_write = expire_after_write
        self.namespace = namespace

    @classmethod
    def from_settings(cls, namespace: str = "lavasrc:spotify:track") -> "TrackMetadataCache":
        """Build the cache from ``LAVASRC["CACHE"]``."""
        cfg = conf.get("CACHE")
        return cls(
            alias=cfg["ALIAS"],
            expire_after_access=int(cfg["EXPIRE_AFTER_ACCESS"]),
            expire_after_write=int(cfg["EXPIRE_AFTER_WRITE"]),
            namespace=namespace,
        )

    @property
    def _backend(self):
        return caches[self.alias]

    @property
    def _generation_key(self) -> str:
        return f"{self.namespace}:generation"

    def _generation(self) -> int:
        return self._backend.get_or_set(self._generation_key, 1, None)

    def _key(self, track_id: str) -> str:
        """
        ``<namespace>:g<generation>:<id>``

        Ids that are not plain (spaces, URLs, very long) are replaced by their
        SHA-1 so the key stays memcached-safe.
        """
        if not _PLAIN_ID.match(track_id):
            track_id = "#" + hashlib.sha1(track_id.encode("utf-8")).hexdigest()
        return f"{self.namespace}:g{self._generation()}:{track_id}"

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the cached value or ``default``.

        A hit slides the access deadline forward but never past the write
        deadline.
        """
        try:
            full_key = self._key(key)
            entry = self._backend.get(full_key)
            if entry is None:
                logger.debug("Cache MISS: %s", key)
                return default

            value, written_at = entry
            remaining = self.expire_after_write - (time.time() - written_at)
            if remaining <= 0:
                logger.debug("Cache EXPIRED: %s", key)
                self._backend.delete(full_key)
                return default

            self._backend.touch(full_key, max(1, int(min(self.expire_after_access, remaining))))
        except Exception as e:
            logger.error("Cache get error for key %s: %s", key, e)
            return default

        logger.debug("Cache HIT: %s", key)
        return value

    def put(self, key: str, value: Any):
        timeout = min(self.expire_after_access, self.expire_after_write)
        try:
            self._backend.set(self._key(key), (value, time.time()), timeout)
            logger.debug("Cache set: %s (timeout: %ss)", key, timeout)
        except Exception as e:
            logger.error("Cache set error for key %s: %s", key, e)

    def invalidate(self, key: str):
        try:
            self._backend.delete(self._key(key))
            logger.debug("Cache delete: %s", key)
        except Exception as e:
            logger.error("Cache delete error for key %s: %s", key, e)

    def invalidate_all(self):
        try:
            generation = self._generation() + 1
            self._backend.set(self._generation_key, generation, None)
            logger.info("Invalidated cache namespace %s (generation %s)", self.namespace, generation)
        except Exception as e:
            logger.error("Cache invalidate_all error for %s: %s", self.namespace, e)

    def get_or_set(self, key: str, callable_func) -> Optional[Any]:
        """Get from cache or compute, storing non-``None`` results."""
        value = self.get(key)
        if value is None:
            value = callable_func()
            if value is not None:
                self.put(key, value)
        return value
