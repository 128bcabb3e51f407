"""
Remote Metadata Cache.

Remote queries such as tag listings are slow and rate limited. Components that
want to cache them receive a MetadataCache explicitly; there is no global
cache instance.

Cache Structure:
    <cache_dir>/
    ├── <sha256>.value        # Cached payload
    └── <sha256>.meta.json    # Key, timestamp and size of the payload
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)


class MetadataCache(Protocol):
    """Keyed string storage. Expiry and size bounds belong to the implementation."""

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str) -> None:
        ...


@dataclass
class CacheEntryMeta:
    """
    Metadata stored next to a cached value.

    Attributes:
        key: The original cache key.
        stored_at: ISO timestamp of the last put.
        size_bytes: Size of the stored value.
    """

    key: str
    stored_at: str
    size_bytes: int

    @property
    def stored_datetime(self) -> datetime:
        return datetime.fromisoformat(self.stored_at.replace("Z", "+00:00"))


class DiskCache:
    """
    Disk-backed MetadataCache with a time-to-live and a total size bound.

    Example:
        ```python
        cache = DiskCache(Path("~/.vcsfetch/cache").expanduser(), 1 << 30, timedelta(hours=6))
        cache.put("tags:https://github.com/org/repo.git", "v1.0.0\\nv1.1.0")
        cache.get("tags:https://github.com/org/repo.git")
        ```
    """

    VALUE_SUFFIX = ".value"
    META_SUFFIX = ".meta.json"

    def __init__(self, directory: Path, max_size_bytes: int, ttl: timedelta):
        """
        Initialize the cache.

        Args:
            directory: Where entries are stored; created on first put.
            max_size_bytes: Upper bound for the summed size of all values.
            ttl: Entries older than this are treated as missing.
        """
        self.directory = Path(directory)
        self.max_size_bytes = max_size_bytes
        self.ttl = ttl

    @staticmethod
    def _hash(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def _paths(self, key: str) -> tuple[Path, Path]:
        digest = self._hash(key)
        return (
            self.directory / f"{digest}{self.VALUE_SUFFIX}",
            self.directory / f"{digest}{self.META_SUFFIX}",
        )

    def _load_meta(self, meta_path: Path) -> Optional[CacheEntryMeta]:
        if not meta_path.exists():
            return None
        try:
            with open(meta_path, encoding="utf-8") as f:
                return CacheEntryMeta(**json.load(f))
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.debug(f"Ignoring unreadable cache metadata {meta_path}: {e}")
            return None

    def _is_expired(self, meta: CacheEntryMeta) -> bool:
        if self.ttl <= timedelta(0):
            return True
        try:
            age = datetime.now(timezone.utc) - meta.stored_datetime
        except ValueError:
            return True
        return age > self.ttl

    def get(self, key: str) -> Optional[str]:
        """
        Look up a value.

        Returns:
            The cached value, or None if missing, expired or unreadable.
        """
        value_path, meta_path = self._paths(key)
        meta = self._load_meta(meta_path)
        if meta is None or meta.key != key or self._is_expired(meta):
            return None
        try:
            return value_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def put(self, key: str, value: str) -> None:
        """Store a value and evict the oldest entries beyond the size bound."""
        self.directory.mkdir(parents=True, exist_ok=True)
        value_path, meta_path = self._paths(key)
        data = value.encode("utf-8")
        value_path.write_bytes(data)
        meta = CacheEntryMeta(
            key=key,
            stored_at=datetime.now(timezone.utc).isoformat(),
            size_bytes=len(data),
        )
        with open(meta_path, "w", encoding="utf-8") as f:
            json.dump(asdict(meta), f, indent=2)
        self._enforce_size_bound()

    def _entries(self) -> List[tuple[Path, CacheEntryMeta]]:
        if not self.directory.is_dir():
            return []
        entries = []
        for meta_path in self.directory.glob(f"*{self.META_SUFFIX}"):
            meta = self._load_meta(meta_path)
            if meta is not None:
                entries.append((meta_path, meta))
        return entries

    def _enforce_size_bound(self) -> None:
        entries = sorted(self._entries(), key=lambda e: e[1].stored_at)
        total = sum(meta.size_bytes for _, meta in entries)
        while entries and total > self.max_size_bytes:
            meta_path, meta = entries.pop(0)
            self._remove(meta_path)
            total -= meta.size_bytes
            logger.debug(f"Evicted cache entry for '{meta.key}'")

    def _remove(self, meta_path: Path) -> None:
        digest = meta_path.name[: -len(self.META_SUFFIX)]
        for path in (meta_path, self.directory / f"{digest}{self.VALUE_SUFFIX}"):
            path.unlink(missing_ok=True)

    def clear(self) -> int:
        """Remove every entry. Returns the number of removed entries."""
        entries = self._entries()
        for meta_path, _ in entries:
            self._remove(meta_path)
        return len(entries)
