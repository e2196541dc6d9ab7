"""
Replay prevention and idempotency for payment requests

Both are small in-process maps with expiry. They protect a single API
process; they are not shared between workers.

Replay guard:
    Clients may send X-Nonce and X-Timestamp (epoch milliseconds).
    A request whose timestamp is older than the window, or whose
    (client ip, nonce) pair was already seen inside the window, is
    rejected with 400. Requests without the headers pass through.

Idempotency:
    A response stored under an Idempotency-Key is replayed for 24 hours
    instead of performing the operation again.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional

from fastapi import Header, Request, status

from app.core.config import get_settings
from app.core.errors import APIError

logger = logging.getLogger(__name__)


class TTLCache:
    """
    Bounded key/value map whose entries expire.

    Expired entries are dropped on read and purged on every write; when
    the map is full the oldest entry is evicted.
    """

    def __init__(
        self,
        default_ttl: float,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[Any, float]]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            now = self._clock()
            self._entries[key] = (value, now + (ttl if ttl is not None else self.default_ttl))
            self._entries.move_to_end(key)
            self._purge(now)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def add(self, key: str, value: Any = True, ttl: Optional[float] = None) -> bool:
        """Store key only if absent (or expired). Returns False when it was present."""
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and now < entry[1]:
                return False
        self.set(key, value, ttl)
        return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _purge(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]


def client_ip(request: Request) -> str:
    """Client address, honouring the first X-Forwarded-For hop."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


_settings = get_settings()

nonce_cache = TTLCache(default_ttl=_settings.replay_window_seconds)
idempotency_cache = TTLCache(default_ttl=_settings.idempotency_ttl_seconds)


def check_replay(
    nonce: Optional[str],
    timestamp: Optional[str],
    ip: str,
    cache: TTLCache = nonce_cache,
    window_seconds: Optional[int] = None,
    now_ms: Optional[float] = None,
) -> None:
    if not nonce or not timestamp:
        return

    window = window_seconds if window_seconds is not None else get_settings().replay_window_seconds
    now_ms = now_ms if now_ms is not None else time.time() * 1000

    try:
        sent_at = int(timestamp)
    except ValueError:
        raise APIError("Request expired", status.HTTP_400_BAD_REQUEST, "request_expired")

    if sent_at < now_ms - window * 1000:
        raise APIError("Request expired", status.HTTP_400_BAD_REQUEST, "request_expired")

    request_id = f"{ip}:{nonce}"
    if not cache.add(request_id, True, ttl=window):
        logger.warning(f"Replayed payment request detected: {request_id}")
        raise APIError(
            "Duplicate request detected",
            status.HTTP_400_BAD_REQUEST,
            "duplicate_request",
        )


async def prevent_replay(
    request: Request,
    x_nonce: Optional[str] = Header(None, alias="X-Nonce"),
    x_timestamp: Optional[str] = Header(None, alias="X-Timestamp"),
) -> None:
    """FastAPI dependency guarding payment endpoints against replays."""
    check_replay(x_nonce, x_timestamp, client_ip(request))
