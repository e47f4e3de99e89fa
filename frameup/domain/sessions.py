# frameup/domain/sessions.py
import logging
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from frameup.domain.editor_service import EditorService

logger = logging.getLogger(__name__)


class SessionStore:
    """Open editing sessions, least recently used first.

    Sessions idle for longer than idle_timeout seconds are dropped on the next
    access; adding past max_sessions drops the least recently used one.
    """

    def __init__(self, max_sessions: int, idle_timeout: float, clock: Callable[[], float] = time.monotonic):
        self.max_sessions = max(max_sessions, 1)
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: "OrderedDict[str, Tuple[float, EditorService]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def add(self, session_id: str, service: EditorService) -> None:
        self.evict_idle()
        self._sessions[session_id] = (self._clock(), service)
        self._sessions.move_to_end(session_id)
        while len(self._sessions) > self.max_sessions:
            evicted_id, _ = self._sessions.popitem(last=False)
            logger.info(f"Session {evicted_id} evicted: limit of {self.max_sessions} sessions reached.")

    def get(self, session_id: str) -> Optional[EditorService]:
        self.evict_idle()
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        self._sessions[session_id] = (self._clock(), entry[1])
        self._sessions.move_to_end(session_id)
        return entry[1]

    def pop(self, session_id: str) -> Optional[EditorService]:
        entry = self._sessions.pop(session_id, None)
        return entry[1] if entry else None

    def evict_idle(self) -> int:
        cutoff = self._clock() - self.idle_timeout
        evicted = 0
        # oldest first, stop at the first session still in use
        while self._sessions:
            session_id, (touched, _) = next(iter(self._sessions.items()))
            if touched > cutoff:
                break
            del self._sessions[session_id]
            evicted += 1
            logger.info(f"Session {session_id} evicted after {self.idle_timeout}s idle.")
        return evicted

    def clear(self) -> None:
        self._sessions.clear()
