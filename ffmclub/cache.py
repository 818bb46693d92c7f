import asyncio
import time
from typing import Any, Dict, Optional


class TTLCache:
    """Process-local key/value store whose entries expire after a TTL.

    Used for revoked session tokens and password-reset tokens that have
    already been redeemed.
    """

    def __init__(self) -> None:
        # key -> (value, expires_at)
        self._store: Dict[str, tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        now = time.time()
        async with self._lock:
            item = self._store.get(key)
            if not item:
                return None
            value, exp = item
            if exp < now:
                self._store.pop(key, None)
                return None
            return value

    async def contains(self, key: str) -> bool:
        return await self.get(key) is not None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        exp = time.time() + max(0, int(ttl_seconds))
        async with self._lock:
            self._store[key] = (value, exp)
            self._purge_expired(time.time())

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._store.items() if exp < now]
        for k in expired:
            self._store.pop(k, None)


__all__ = ["TTLCache"]
