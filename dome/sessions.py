"""Resident sessions for connected players."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from .models.profiles import PlayerProfile
from .ratelimit import RateLimiter
from .storage import ProfileStore

log = logging.getLogger(__name__)


@dataclass(slots=True)
class NavigationState:
    """Panel scratch state kept for the presentation layer."""

    store_category: str = "weapons"
    editing_slot: str = "primary"
    selected_weapon_id: Optional[str] = None


@dataclass(slots=True, eq=False)
class Session:
    identity: int
    profile: PlayerProfile
    last_wager_at: Optional[float] = None
    navigation: NavigationState = field(default_factory=NavigationState)
    connected_at: float = field(default_factory=time.time)
    closed: bool = False
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)


class SessionRegistry:
    """Map of connected identities to their single resident :class:`Session`.

    A session's profile is the only live copy of that player's state while
    the player is connected.  ``remove`` always attempts a final save before
    the session is evicted, and marks the session closed so late callers can
    tell they hold a stale reference.
    """

    def __init__(self, store: ProfileStore, limiter: RateLimiter | None = None) -> None:
        self.store = store
        self.limiter = limiter
        self._sessions: Dict[int, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(self.for_each_active())

    def get(self, identity: int) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(identity)

    def get_or_create(self, identity: int, *, now: float | None = None) -> Session:
        with self._lock:
            session = self._sessions.get(identity)
        if session is not None:
            return session

        profile = self.store.load(identity, now=now)
        candidate = Session(
            identity=identity,
            profile=profile,
            connected_at=time.time() if now is None else now,
        )
        with self._lock:
            session = self._sessions.setdefault(identity, candidate)
        if session is candidate:
            log.info("Session opened for %s", identity)
        return session

    def remove(self, identity: int, *, now: float | None = None) -> bool:
        """Save and evict ``identity``; returns whether the final save succeeded."""

        with self._lock:
            session = self._sessions.get(identity)
        saved = False
        if session is not None:
            with session.lock:
                saved = self.store.save(session.profile, now=now)
                if not saved:
                    log.warning(
                        "Final save failed for %s; evicting with unsaved changes", identity
                    )
                session.closed = True
                with self._lock:
                    if self._sessions.get(identity) is session:
                        del self._sessions[identity]
            log.info("Session closed for %s", identity)
        if self.limiter is not None:
            self.limiter.forget(identity)
        return saved

    def for_each_active(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def identities(self) -> List[int]:
        with self._lock:
            return list(self._sessions)

    def replace_profile(self, identity: int, profile: PlayerProfile) -> Optional[Session]:
        session = self.get(identity)
        if session is None:
            return None
        with session.lock:
            session.profile = profile
            session.last_wager_at = None
        return session

    def save_all(self, *, now: float | None = None) -> int:
        saved = 0
        for session in self.for_each_active():
            with session.lock:
                if session.closed:
                    continue
                if self.store.save(session.profile, now=now):
                    saved += 1
        log.debug("Autosave stored %s profile(s)", saved)
        return saved

    def close_all(self, *, now: float | None = None) -> int:
        saved = 0
        for identity in self.identities():
            if self.remove(identity, now=now):
                saved += 1
        return saved


__all__ = ["NavigationState", "Session", "SessionRegistry"]
