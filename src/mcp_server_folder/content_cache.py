"""
DiskCache-based Content Cache

Memoizes text extracted from documents, keyed by the file's sandbox-relative
path and modification time. A new modification time yields a new key, so stale
entries are never served; they simply stop being looked up.

Key Benefits:
- Survives restarts (SQLite index + one artifact file per entry)
- Safe for concurrent readers and writers
- Wiping the directory only costs re-extraction
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

import diskcache

logger = logging.getLogger(__name__)


class ContentCache:
    """Persistent text cache backed by diskcache."""

    def __init__(self, cache_dir: str | Path, size_limit: int | None = None) -> None:
        """
        Initialize ContentCache.

        Args:
            cache_dir: Directory for cache storage
            size_limit: Optional byte bound. None keeps every entry forever.
        """
        self._cache_dir = Path(cache_dir)
        self._cache_dir.mkdir(parents=True, exist_ok=True)

        if size_limit is None:
            # Unbounded: entries are only superseded, never culled
            settings = {"eviction_policy": "none"}
        else:
            settings = {
                "eviction_policy": "least-recently-used",
                "size_limit": size_limit,
            }
        # min file size 0 stores every payload as its own file in cache_dir
        self._cache = diskcache.Cache(
            directory=str(self._cache_dir),
            disk_min_file_size=0,
            **settings,
        )

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - automatic cleanup."""
        self.close()

    def close(self) -> None:
        """Close the cache and release the SQLite handle."""
        if hasattr(self, "_cache"):
            self._cache.close()

    @property
    def directory(self) -> Path:
        return self._cache_dir

    @staticmethod
    def key(relative_path: str, mtime_ms: float) -> str:
        """Digest of (path, mtime). The ':' separator keeps ("a", 1) and ("a1", ...) apart."""
        digest = hashlib.sha256()
        digest.update(relative_path.encode("utf-8"))
        digest.update(b":")
        digest.update(repr(float(mtime_ms)).encode("ascii"))
        return digest.hexdigest()

    def read(self, key: str) -> str | None:
        """Return the cached text, or None when absent."""
        value = self._cache.get(key)
        if value is None:
            logger.debug(f"Cache miss {key[:12]}")
            return None
        logger.debug(f"Cache hit {key[:12]}")
        return value

    def write(self, key: str, text: str) -> None:
        """Store ``text`` under ``key``, replacing any previous entry."""
        self._cache.set(key, text)

    def __len__(self) -> int:
        return len(self._cache)
