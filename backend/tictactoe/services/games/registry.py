import logging
import threading
from typing import Callable, Dict, List, Optional

from tictactoe.models import Binding, PlayerStats, Session, generate_session_id

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-memory sessions and connection bindings.

    The maps themselves are guarded by a registry lock. Mutating a Session
    is the coordinator's job and happens under ``session.lock``.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None, max_id_attempts: int = 100):
        self._id_factory = id_factory or generate_session_id
        self._max_id_attempts = max_id_attempts
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}
        self._bindings: Dict[str, Binding] = {}
        self._stats: Dict[str, PlayerStats] = {}

    def create_session(self) -> Session:
        with self._lock:
            for _ in range(self._max_id_attempts):
                session_id = self._id_factory()
                if session_id not in self._sessions:
                    break
            else:
                raise RuntimeError('Could not generate a unique session id')
            session = Session(id=session_id)
            self._sessions[session_id] = session
        logger.info(f"[session-created] session={session_id}")
        return session

    def get(self, session_id) -> Optional[Session]:
        if not isinstance(session_id, str):
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> None:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed:
            logger.info(f"[session-deleted] session={session_id}")

    def list_sessions(self) -> List[dict]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [s.summary() for s in sessions]

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    # ---- connection bindings ----

    def bind_connection(self, connection_id: str, session_id: str, participant_index: int,
                        symbol: str, display_name: str) -> Optional[Binding]:
        """Bind a connection to a seat. Returns None if it is already bound elsewhere."""
        binding = Binding(session_id, participant_index, symbol, display_name)
        with self._lock:
            if connection_id in self._bindings:
                return None
            self._bindings[connection_id] = binding
        return binding

    def unbind_connection(self, connection_id: str) -> Optional[Binding]:
        with self._lock:
            return self._bindings.pop(connection_id, None)

    def binding_for(self, connection_id: str) -> Optional[Binding]:
        with self._lock:
            return self._bindings.get(connection_id)

    # ---- per-connection tallies ----

    def stats_for(self, connection_id: str, display_name: Optional[str] = None) -> PlayerStats:
        """Return the connection's tally, creating it on first use."""
        with self._lock:
            stats = self._stats.get(connection_id)
            if stats is None:
                stats = PlayerStats(display_name=display_name or '')
                self._stats[connection_id] = stats
            elif display_name:
                stats.display_name = display_name
            return stats

    def peek_stats(self, connection_id: str) -> Optional[PlayerStats]:
        with self._lock:
            return self._stats.get(connection_id)

    def drop_stats(self, connection_id: str) -> None:
        with self._lock:
            self._stats.pop(connection_id, None)
