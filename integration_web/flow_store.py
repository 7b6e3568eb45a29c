"""
Pending login attempts (state -> owning session).
The state sent to the provider must come back unchanged, unexpired, and on the same
session that started the login; otherwise the callback is rejected.
"""
import threading
import time
from dataclasses import dataclass

# TTL seconds for a pending login (user has this long at the provider's consent screen)
FLOW_TTL = 600


@dataclass
class PendingLogin:
    session_id: str
    created_at: float


class PendingLoginStore:
    def __init__(self, ttl_seconds: float = FLOW_TTL) -> None:
        self._ttl = ttl_seconds
        self._pending: dict[str, PendingLogin] = {}
        self._lock = threading.Lock()

    def _expired(self, flow: PendingLogin, now: float) -> bool:
        return (now - flow.created_at) > self._ttl

    def store(self, state: str, session_id: str) -> None:
        now = time.monotonic()
        with self._lock:
            self._clean_expired(now)
            self._pending[state] = PendingLogin(session_id=session_id, created_at=now)

    def consume(self, state: str, session_id: str) -> bool:
        """True if state was issued to session_id and is still valid. Single use."""
        with self._lock:
            flow = self._pending.pop(state, None)
        if flow is None or self._expired(flow, time.monotonic()):
            return False
        return flow.session_id == session_id

    def _clean_expired(self, now: float) -> None:
        expired = [s for s, f in self._pending.items() if self._expired(f, now)]
        for s in expired:
            del self._pending[s]

    def __len__(self) -> int:
        return len(self._pending)
