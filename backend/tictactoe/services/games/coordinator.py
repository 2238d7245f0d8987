"""Session state machine: join, move, reset, leave.

Every transition runs under the session's lock and emits its events through
the transport before the lock is released, so all members of a session see
events in the order the transitions were applied.

Invalid actions (wrong turn, occupied cell, foreign session, ...) are not
errors: they come back as ``Ignored`` and nothing is emitted. Only admission
problems (full or unknown session) are reported to the caller, as
``Rejected``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from tictactoe.models import TIE, Participant, Session, other_index, symbol_for
from tictactoe.services.games.board import BOARD_SIZE, empty_board, is_full, winner
from tictactoe.services.games.registry import SessionRegistry

logger = logging.getLogger(__name__)

SESSION_FULL = 'session-full'
SESSION_NOT_FOUND = 'session-not-found'


class Transport(Protocol):
    def join_group(self, connection_id: str, group: str) -> None: ...

    def leave_group(self, connection_id: str, group: str) -> None: ...

    def send_to_group(self, group: str, event: str, payload: Dict[str, Any]) -> None: ...

    def send_to_connection(self, connection_id: str, event: str, payload: Dict[str, Any]) -> None: ...


@dataclass(frozen=True)
class Event:
    name: str
    payload: Dict[str, Any]
    group: Optional[str] = None
    connection_id: Optional[str] = None


@dataclass(frozen=True)
class Applied:
    session_id: str
    events: Tuple[Event, ...] = ()


@dataclass(frozen=True)
class Ignored:
    reason: str


@dataclass(frozen=True)
class Rejected:
    reason: str
    events: Tuple[Event, ...] = ()


Outcome = Union[Applied, Ignored, Rejected]


class SessionCoordinator:
    def __init__(self, registry: SessionRegistry, transport: Transport, create_on_unknown: bool = False):
        self.registry = registry
        self.transport = transport
        self.create_on_unknown = create_on_unknown

    # ---- emission helpers ----

    def _to_group(self, events: List[Event], session: Session, name: str, payload: Dict[str, Any]) -> None:
        self.transport.send_to_group(session.id, name, payload)
        events.append(Event(name, payload, group=session.id))

    def _to_connection(self, events: List[Event], connection_id: str, name: str, payload: Dict[str, Any]) -> None:
        self.transport.send_to_connection(connection_id, name, payload)
        events.append(Event(name, payload, connection_id=connection_id))

    def _ignore(self, reason: str, **context) -> Ignored:
        details = ' '.join(f"{k}={v}" for k, v in context.items())
        logger.debug(f"[ignored] reason={reason} {details}".rstrip())
        return Ignored(reason)

    def _still_live(self, session: Session) -> bool:
        # The session may have been destroyed between lookup and lock acquisition
        return self.registry.get(session.id) is session

    # ---- transitions ----

    def join(self, connection_id: str, session_id=None, display_name: Optional[str] = None) -> Outcome:
        if self.registry.binding_for(connection_id):
            return self._ignore('already-joined', connection=connection_id)

        # None or blank means "start a new session"; anything else names an existing one
        if session_id is None or (isinstance(session_id, str) and not session_id.strip()):
            requested = None
        else:
            requested = session_id.strip() if isinstance(session_id, str) else session_id
        session = self.registry.get(requested) if requested is not None else None
        if session is None and requested is not None and not self.create_on_unknown:
            events: List[Event] = []
            self._to_connection(events, connection_id, 'session_not_found', {'session_id': requested})
            logger.info(f"[join-rejected] session={requested} reason={SESSION_NOT_FOUND}")
            return Rejected(SESSION_NOT_FOUND, tuple(events))
        created = session is None
        if created:
            session = self.registry.create_session()

        with session.lock:
            try:
                return self._admit(session, connection_id, display_name)
            finally:
                if created and session.participant_count == 0:
                    self.registry.delete(session.id)

    def _admit(self, session: Session, connection_id: str, display_name: Optional[str]) -> Outcome:
        """Seat ``connection_id`` in ``session``. Caller holds ``session.lock``."""
        if not self._still_live(session):
            events: List[Event] = []
            self._to_connection(events, connection_id, 'session_not_found', {'session_id': session.id})
            return Rejected(SESSION_NOT_FOUND, tuple(events))

        if self.registry.binding_for(connection_id):
            return self._ignore('already-joined', connection=connection_id)

        index = session.lowest_free_index()
        if index is None:
            events = []
            self._to_connection(events, connection_id, 'session_full', {})
            logger.info(f"[join-rejected] session={session.id} reason={SESSION_FULL}")
            return Rejected(SESSION_FULL, tuple(events))

        name = (display_name or '').strip() if isinstance(display_name, str) else ''
        participant = Participant(
            connection_id=connection_id,
            index=index,
            display_name=name or f"Player {index + 1}",
        )
        # Claiming the binding is the atomic step: a concurrent join from the same connection loses here
        if self.registry.bind_connection(connection_id, session.id, index, participant.symbol,
                                         participant.display_name) is None:
            return self._ignore('already-joined', connection=connection_id)

        joined_group = False
        try:
            self.transport.join_group(connection_id, session.id)
            joined_group = True
            session.add_participant(participant)
            events = self._announce_join(session, participant)
        except Exception:
            # Undo the seat so a failed join leaves the session as it was
            session.remove_participant(connection_id)
            self.registry.unbind_connection(connection_id)
            if joined_group:
                self.transport.leave_group(connection_id, session.id)
            raise

        self.registry.stats_for(connection_id, participant.display_name)
        return Applied(session.id, tuple(events))

    def _announce_join(self, session: Session, participant: Participant) -> List[Event]:
        logger.info(
            f"[join] session={session.id} index={participant.index} symbol={participant.symbol} "
            f"name={participant.display_name} players={session.participant_count}"
        )
        events: List[Event] = []
        self._to_connection(events, participant.connection_id, 'joined', {
            'session_id': session.id,
            'participant_index': participant.index,
            'symbol': participant.symbol,
            'display_name': participant.display_name,
            'board': list(session.board),
            'scores': dict(session.scores),
            'turn': session.turn,
            'next_starter': session.next_starter,
            'roster': session.roster(),
        })
        self._to_group(events, session, 'roster_updated', {
            'participant_count': session.participant_count,
            'turn': session.turn,
            'roster': session.roster(),
        })
        if session.is_full:
            names = ' vs '.join(p.display_name for p in session.participants)
            logger.info(f"[round-started] session={session.id} players={names}")
            self._to_group(events, session, 'round_started', {
                'board': list(session.board),
                'turn': session.turn,
                'roster': session.roster(),
                'next_starter': session.next_starter,
            })
        return events

    def move(self, connection_id: str, session_id, cell_index) -> Outcome:
        session = self.registry.get(session_id)
        if session is None:
            return self._ignore('unknown-session', session=session_id)

        with session.lock:
            if not self._still_live(session):
                return self._ignore('unknown-session', session=session_id)
            binding = self.registry.binding_for(connection_id)
            participant = session.participant_for(connection_id)
            if binding is None or binding.session_id != session.id or participant is None:
                return self._ignore('not-a-participant', session=session.id, connection=connection_id)
            if session.state != 'active':
                return self._ignore('not-active', session=session.id, state=session.state)
            if session.turn != participant.index:
                return self._ignore('out-of-turn', session=session.id, index=participant.index)
            if isinstance(cell_index, bool) or not isinstance(cell_index, int) or not 0 <= cell_index < BOARD_SIZE:
                return self._ignore('bad-cell', session=session.id, cell=cell_index)
            if session.board[cell_index] is not None:
                return self._ignore('occupied', session=session.id, cell=cell_index)

            session.board[cell_index] = participant.symbol
            session.turn = other_index(session.turn)
            logger.debug(f"[move] session={session.id} index={participant.index} cell={cell_index}")

            won_by = winner(session.board)
            if won_by:
                session.round_over = True
                session.outcome = won_by
                session.scores[won_by] += 1
                session.next_starter = other_index(session.next_starter)
            elif is_full(session.board):
                session.round_over = True
                session.outcome = TIE
                session.next_starter = other_index(session.next_starter)
            if session.round_over:
                self._record_stats(session)
                logger.info(
                    f"[round-over] session={session.id} outcome={session.outcome} "
                    f"scores=X:{session.scores['X']},O:{session.scores['O']}"
                )

            events: List[Event] = []
            self._to_group(events, session, 'move_applied', {
                'board': list(session.board),
                'turn': session.turn,
                'round_over': session.round_over,
                'outcome': session.outcome,
                'scores': dict(session.scores),
                'next_starter': session.next_starter,
            })
            return Applied(session.id, tuple(events))

    def _record_stats(self, session: Session) -> None:
        for p in session.participants:
            stats = self.registry.peek_stats(p.connection_id)
            if stats is None:
                continue
            if session.outcome == TIE:
                stats.ties += 1
            elif session.outcome == p.symbol:
                stats.wins += 1
            else:
                stats.losses += 1

    def reset(self, connection_id: str, session_id) -> Outcome:
        session = self.registry.get(session_id)
        if session is None:
            return self._ignore('unknown-session', session=session_id)

        with session.lock:
            if not self._still_live(session):
                return self._ignore('unknown-session', session=session_id)
            if session.participant_for(connection_id) is None:
                return self._ignore('not-a-participant', session=session.id, connection=connection_id)
            if not session.is_full:
                return self._ignore('waiting-for-opponent', session=session.id)

            session.board = empty_board()
            session.turn = session.next_starter
            session.round_over = False
            session.outcome = None
            logger.info(f"[reset] session={session.id} turn={session.turn} symbol={symbol_for(session.turn)}")

            events: List[Event] = []
            self._to_group(events, session, 'round_reset', {
                'board': list(session.board),
                'turn': session.turn,
                'scores': dict(session.scores),
                'roster': session.roster(),
                'next_starter': session.next_starter,
            })
            return Applied(session.id, tuple(events))

    def leave(self, connection_id: str) -> Outcome:
        # Popping the binding first makes leave/disconnect take effect at most once
        binding = self.registry.unbind_connection(connection_id)
        if binding is None:
            return self._ignore('not-joined', connection=connection_id)

        session = self.registry.get(binding.session_id)
        if session is None:
            return self._ignore('unknown-session', session=binding.session_id)

        with session.lock:
            if not self._still_live(session) or session.remove_participant(connection_id) is None:
                return self._ignore('not-a-participant', session=binding.session_id, connection=connection_id)
            self.transport.leave_group(connection_id, session.id)

            if session.participant_count == 0:
                self.registry.delete(session.id)
                logger.info(f"[leave] session={session.id} name={binding.display_name} session destroyed")
                return Applied(session.id)

            logger.info(
                f"[leave] session={session.id} name={binding.display_name} "
                f"players={session.participant_count}"
            )
            events: List[Event] = []
            self._to_group(events, session, 'opponent_left', {})
            return Applied(session.id, tuple(events))

    def disconnect(self, connection_id: str) -> Outcome:
        try:
            return self.leave(connection_id)
        finally:
            self.registry.drop_stats(connection_id)

    def stats(self, connection_id: str) -> Dict[str, Any]:
        stats = self.registry.peek_stats(connection_id)
        payload = stats.to_dict() if stats else {'display_name': '', 'wins': 0, 'losses': 0, 'ties': 0}
        self.transport.send_to_connection(connection_id, 'stats', payload)
        return payload
