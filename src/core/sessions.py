from __future__ import annotations

import secrets
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

from db.models import Role, Session
from utils.logger import get_logger

_logger = get_logger(__name__)


class SessionStore(ABC):
    """Server-held login sessions, keyed by an opaque token."""

    @abstractmethod
    def create(self, account_ref: str, role: Role) -> str: ...

    @abstractmethod
    def resolve(self, token: str) -> Optional[Session]: ...


class MemorySessionStore(SessionStore):
    """
    In-process sessions. Nothing survives a restart.

    ttl: seconds a session stays valid; 0 or None keeps it until the process exits.
    """

    def __init__(self, ttl: Optional[float] = None, clock=time.monotonic):
        self.ttl = ttl or None
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def _sweep(self) -> None:
        now = self._clock()
        expired = [t for t, s in self._sessions.items() if s.expires_at is not None and now >= s.expires_at]
        for token in expired:
            del self._sessions[token]
        if expired:
            _logger.debug(f"Dropped {len(expired)} expired sessions")

    def create(self, account_ref: str, role: Role) -> str:
        if self.ttl:
            self._sweep()
        token = secrets.token_urlsafe(32)
        expires_at = self._clock() + self.ttl if self.ttl else None
        self._sessions[token] = Session(account_ref=account_ref, role=Role(role), expires_at=expires_at)
        _logger.debug(f"Session opened for {account_ref}")
        return token

    def resolve(self, token: str) -> Optional[Session]:
        if not token:
            return None
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.expires_at is not None and self._clock() >= session.expires_at:
            del self._sessions[token]
            _logger.debug(f"Session for {session.account_ref} expired")
            return None
        return session
