from __future__ import annotations

import hashlib
import time
from datetime import datetime, timezone
from threading import Lock
from typing import BinaryIO, Optional

import blake3

_SEPARATORS = "\\/"

HASH_ALGORITHMS = ("sha256", "blake3")


def utc(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so they compare with scan timestamps."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def strip_separators(path: str) -> str:
    stripped = path.rstrip(_SEPARATORS)
    # "/" or "\\" on their own are roots, keep one separator
    return stripped if stripped else path[:1]


def folder_key(path: str) -> str:
    """Case-insensitive key for a path, trailing separators removed."""
    return strip_separators(path).casefold()


def is_within(path_key: str, root_key: str) -> bool:
    """Prefix test on normalised keys that respects path boundaries."""
    if path_key == root_key:
        return True
    if not path_key.startswith(root_key):
        return False
    if root_key and root_key[-1] in _SEPARATORS:
        return True
    return path_key[len(root_key)] in _SEPARATORS


def _last_separator(path: str) -> int:
    return max(path.rfind("/"), path.rfind("\\"))


def file_name(path: str) -> str:
    path = strip_separators(path)
    return path[_last_separator(path) + 1:]


def parent_dir(path: str) -> str:
    path = strip_separators(path)
    idx = _last_separator(path)
    if idx < 0:
        return ""
    if idx == 0:
        return path[:1]
    parent = path[:idx]
    # keep drive roots such as "C:\"
    if parent.endswith(":"):
        return path[: idx + 1]
    return parent


class ByteRateLimiter:
    """Token bucket shared by every hashing worker.

    A single read is charged at most ``burst`` bytes, so a chunk larger than
    the bucket waits for a full bucket instead of blocking forever.
    """

    def __init__(self, rate_bps: int, burst: Optional[int] = None) -> None:
        self.rate = max(1, int(rate_bps))
        self.capacity = int(burst or self.rate)
        self._available = float(self.capacity)
        self._stamp = time.monotonic()
        self._lock = Lock()

    def _refill(self, now: float) -> None:
        gained = (now - self._stamp) * self.rate
        if gained > 0:
            self._available = min(float(self.capacity), self._available + gained)
            self._stamp = now

    def _take(self, size: int) -> float:
        """Take ``size`` bytes if available; otherwise return seconds to wait."""
        with self._lock:
            self._refill(time.monotonic())
            shortfall = size - self._available
            if shortfall <= 0:
                self._available -= size
                return 0.0
            return shortfall / self.rate

    def acquire(self, size: int) -> None:
        if size <= 0:
            return
        size = min(size, self.capacity)
        wait = self._take(size)
        while wait > 0:
            time.sleep(max(0.001, wait))
            wait = self._take(size)


def _new_hasher(algorithm: str):
    if algorithm == "sha256":
        return hashlib.sha256()
    if algorithm == "blake3":
        return blake3.blake3()
    raise ValueError(f"Unsupported hash algorithm: {algorithm}")


def hash_stream(
    stream: BinaryIO,
    algorithm: str = "sha256",
    chunk_size: int = 1024 * 1024,
    limiter: Optional[ByteRateLimiter] = None,
) -> str:
    h = _new_hasher(algorithm)
    while True:
        b = stream.read(chunk_size)
        if not b:
            break
        if limiter is not None:
            limiter.acquire(len(b))
        h.update(b)
    return h.hexdigest()
