"""
Password reset token storage.

Tokens are inserted when a reset is requested and removed when used or found
expired. Nothing survives a restart. The clock is injected so expiry can be
tested without waiting.
"""

import secrets
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional


class ResetTokenError(Exception):
    """Token unknown, expired or issued for another email."""


@dataclass
class ResetTokenRecord:
    email: str
    expires_at: float


class ResetTokenStore(ABC):
    """Where outstanding reset tokens are kept."""

    @abstractmethod
    def put(self, token: str, record: ResetTokenRecord) -> None:
        ...

    @abstractmethod
    def get(self, token: str) -> Optional[ResetTokenRecord]:
        ...

    @abstractmethod
    def delete(self, token: str) -> None:
        ...

    @abstractmethod
    def purge_expired(self, now: float) -> int:
        """Drop every record that expired before now; return how many."""


class InMemoryResetTokenStore(ResetTokenStore):
    """Process-local token map."""

    def __init__(self):
        self._tokens: Dict[str, ResetTokenRecord] = {}
        self._lock = threading.Lock()

    def put(self, token, record):
        with self._lock:
            self._tokens[token] = record

    def get(self, token):
        with self._lock:
            return self._tokens.get(token)

    def delete(self, token):
        with self._lock:
            self._tokens.pop(token, None)

    def purge_expired(self, now):
        with self._lock:
            expired = [t for t, r in self._tokens.items() if r.expires_at < now]
            for token in expired:
                del self._tokens[token]
        return len(expired)

    def __len__(self):
        return len(self._tokens)


class ResetTokenManager:
    """
    Issues and redeems reset tokens.

    Args:
        store: Backing ResetTokenStore
        ttl_seconds: Token lifetime
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        store: ResetTokenStore,
        ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def issue(self, email: str) -> str:
        """New token for email. Tokens that expired unused are dropped first."""
        now = self.clock()
        self.store.purge_expired(now)
        token = secrets.token_hex(32)
        self.store.put(token, ResetTokenRecord(email=email, expires_at=now + self.ttl_seconds))
        return token

    def redeem(self, token: str, email: str) -> None:
        """
        Check a token for email and remove it.

        Raises:
            ResetTokenError: Unknown token, expired token (removed as a side
                effect) or email mismatch (token kept)
        """
        record = self.store.get(token)
        if record is None:
            raise ResetTokenError("Invalid or expired reset token")
        if record.expires_at < self.clock():
            self.store.delete(token)
            raise ResetTokenError("Reset token has expired")
        if record.email != email:
            raise ResetTokenError("Invalid token for this email address")
        self.store.delete(token)
