"""
Short-lived, single-use state tokens for the GitHub App handshake.

The browser leaves this server several times during the flow (to GitHub and
back), and GitHub's callbacks carry no credentials of their own. The only
thing tying a callback to the admin who started the flow is the state token,
so every token is unpredictable, expires after a fixed TTL and is consumed at
most once.
"""
from typing import Dict, Optional, Tuple
from datetime import datetime, timedelta, timezone
import logging
import threading

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from handshake.core.security import random_state
from handshake.models.github_app_state import GitHubAppState
from handshake.schemas.github_app import StateDetails

logger = logging.getLogger(__name__)

STATE_LENGTH = 64


class StateNotFound(LookupError):
    """State token is unknown, expired or already consumed"""


class StateCache:
    """Key/value cache with a fixed TTL per entry"""

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def delete(self, key: str) -> bool:
        """Delete ``key``. Returns True only if a live entry was removed."""
        raise NotImplementedError


class MemoryStateCache(StateCache):
    """Process-local cache. Only suitable for a single server process."""

    def __init__(self, ttl_seconds: int):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._store: Dict[str, Tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    async def set(self, key: str, value: str) -> None:
        expires_at = datetime.now(timezone.utc) + self.ttl
        with self._lock:
            self._store[key] = (value, expires_at)
            self._cleanup_expired()

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if datetime.now(timezone.utc) >= expires_at:
                del self._store[key]
                return None
            return value

    async def delete(self, key: str) -> bool:
        with self._lock:
            entry = self._store.pop(key, None)
        return entry is not None and datetime.now(timezone.utc) < entry[1]

    def _cleanup_expired(self) -> None:
        now = datetime.now(timezone.utc)
        expired = [key for key, (_, expires_at) in self._store.items() if now >= expires_at]
        for key in expired:
            del self._store[key]


class DatabaseStateCache(StateCache):
    """Cache backed by the github_app_states table"""

    def __init__(self, session_factory: async_sessionmaker, ttl_seconds: int):
        self.session_factory = session_factory
        self.ttl = timedelta(seconds=ttl_seconds)

    async def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc)
        async with self.session_factory() as db:
            db.add(GitHubAppState(state=key, payload=value, created_at=now, expires_at=now + self.ttl))
            # Expired states are never consumed; purge them so the table stays small
            result = await db.execute(delete(GitHubAppState).where(GitHubAppState.expires_at <= now))
            await db.commit()
        if result.rowcount:
            logger.debug(f"Cleaned up {result.rowcount} expired GitHub App states")

    async def get(self, key: str) -> Optional[str]:
        now = datetime.now(timezone.utc)
        async with self.session_factory() as db:
            result = await db.execute(
                select(GitHubAppState.payload).where(
                    GitHubAppState.state == key,
                    GitHubAppState.expires_at > now,
                )
            )
            return result.scalar_one_or_none()

    async def delete(self, key: str) -> bool:
        now = datetime.now(timezone.utc)
        async with self.session_factory() as db:
            result = await db.execute(
                delete(GitHubAppState).where(
                    GitHubAppState.state == key,
                    GitHubAppState.expires_at > now,
                )
            )
            await db.commit()
        return result.rowcount == 1


class StateTokens:
    """Issues state tokens bound to a ``StateDetails`` and consumes them once"""

    def __init__(self, cache: StateCache, entropy_bytes: int = 128):
        self.cache = cache
        self.entropy_bytes = entropy_bytes

    async def issue(self, details: StateDetails) -> str:
        state = random_state(self.entropy_bytes)
        await self.cache.set(state, details.encode())
        logger.debug(f"Issued GitHub App state {state[:8]}...")
        return state

    async def consume(self, state: str) -> StateDetails:
        """
        Look up, decode and then delete ``state``.

        Raises StateNotFound on a miss and InvalidState when the payload does
        not decode; an undecodable entry is left in place. If another request
        deletes the entry between our read and our delete, that request owns
        the token and this one gets StateNotFound.
        """
        payload = await self.cache.get(state)
        if payload is None:
            raise StateNotFound("state query param does not match")

        details = StateDetails.decode(payload)

        if not await self.cache.delete(state):
            logger.warning(f"GitHub App state {state[:8]}... was consumed concurrently")
            raise StateNotFound("state query param does not match")
        logger.debug(f"Consumed GitHub App state {state[:8]}...")
        return details
