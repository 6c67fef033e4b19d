"""
TTL response cache.

Entries are keyed by a content hash of the request and expire lazily: an
expired entry is dropped the next time it is looked up, or by an explicit
purge. The cache is bounded and evicts least-recently-used entries first.
"""

import hashlib
import json
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

import structlog

from .clock import Clock
from .models import CompletionRequest, CompletionResult

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 1000
CACHE_KEY_LENGTH = 16


@dataclass
class CacheEntry:
    """A cached result and its expiry time."""
    value: CompletionResult
    expires_at: float
    created_at: float
    hit_count: int = 0


def make_cache_key(request: CompletionRequest) -> str:
    """Deterministic key for a request.

    Covers prompt and model, plus generation options only when they are set,
    so a plain request is keyed by (prompt, model) alone. The cache flag and
    timeout never affect the key.
    """
    key_data = {"prompt": request.prompt, "model": request.model.value}
    if request.system_prompt is not None:
        key_data["system_prompt"] = request.system_prompt
    if request.temperature is not None:
        key_data["temperature"] = request.temperature
    if request.max_tokens is not None:
        key_data["max_tokens"] = request.max_tokens
    if request.json_mode:
        key_data["json_mode"] = True

    canonical = json.dumps(key_data, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:CACHE_KEY_LENGTH]


class ResponseCache:
    """Key to (value, expiry) store with TTL and LRU eviction."""

    def __init__(
        self,
        clock: Clock,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.clock = clock
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def get(self, key: str) -> Optional[CompletionResult]:
        """Return the cached value while it is fresh, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self.clock.now() >= entry.expires_at:
            del self._entries[key]
            return None

        entry.hit_count += 1
        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: str, value: CompletionResult, ttl_seconds: Optional[float] = None) -> None:
        """Store a value that expires ``ttl_seconds`` from now."""
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be > 0")

        self._entries.pop(key, None)
        while len(self._entries) >= self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            logger.debug("cache_evicted", key=evicted_key)

        now = self.clock.now()
        self._entries[key] = CacheEntry(value=value, expires_at=now + ttl, created_at=now)

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self.clock.now()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("cache_purged", evicted=len(expired))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self.clock.now() < entry.expires_at
