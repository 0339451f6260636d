"""Per-player sliding-window throttle for mutating commands."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Deque, Dict

log = logging.getLogger(__name__)

DEFAULT_ACTIONS_PER_WINDOW = 5
DEFAULT_WINDOW_SECONDS = 1.0


class RateLimiter:
    """Admit at most ``limit`` actions per identity within any ``window`` seconds.

    Each identity keeps a FIFO of admitted timestamps.  A check first drops
    timestamps older than ``now - window``; the action is admitted (and
    recorded) only if fewer than ``limit`` remain.  Rejected actions are not
    recorded.
    """

    def __init__(
        self,
        limit: int = DEFAULT_ACTIONS_PER_WINDOW,
        window: float = DEFAULT_WINDOW_SECONDS,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window <= 0:
            raise ValueError("window must be positive")
        self.limit = int(limit)
        self.window = float(window)
        self._actions: Dict[int, Deque[float]] = {}
        self._lock = threading.Lock()

    def allow(
        self,
        identity: int,
        limit: int | None = None,
        window: float | None = None,
        *,
        now: float | None = None,
    ) -> bool:
        limit = self.limit if limit is None else int(limit)
        window = self.window if window is None else float(window)
        current = time.monotonic() if now is None else now
        cutoff = current - window
        with self._lock:
            actions = self._actions.get(identity)
            if actions is None:
                actions = deque()
                self._actions[identity] = actions
            while actions and actions[0] < cutoff:
                actions.popleft()
            if len(actions) >= limit:
                log.debug("Rate limit exceeded for %s", identity)
                return False
            actions.append(current)
            return True

    def forget(self, identity: int) -> None:
        """Drop throttle state for ``identity`` (called when its session ends)."""

        with self._lock:
            self._actions.pop(identity, None)

    def tracked(self) -> int:
        with self._lock:
            return len(self._actions)


__all__ = ["DEFAULT_ACTIONS_PER_WINDOW", "DEFAULT_WINDOW_SECONDS", "RateLimiter"]
