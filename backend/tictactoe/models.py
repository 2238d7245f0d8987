import random
import string
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tictactoe.services.games.board import empty_board

MAX_PARTICIPANTS = 2
SYMBOLS = ('X', 'O')
TIE = 'tie'

SESSION_ID_ALPHABET = string.ascii_lowercase + string.digits


def symbol_for(index: int) -> str:
    return SYMBOLS[index]


def other_index(index: int) -> int:
    return 1 - index


def generate_session_id(length=6, alphabet=SESSION_ID_ALPHABET):
    """Generate a short random session id. Uniqueness is checked by the registry."""
    return ''.join(random.choices(alphabet, k=length))


@dataclass
class Participant:
    connection_id: str
    index: int
    display_name: str

    @property
    def symbol(self) -> str:
        return symbol_for(self.index)

    def to_dict(self):
        return {
            'display_name': self.display_name,
            'symbol': self.symbol,
        }


@dataclass(frozen=True)
class Binding:
    """Where a live connection currently sits."""
    session_id: str
    participant_index: int
    symbol: str
    display_name: str


@dataclass
class PlayerStats:
    display_name: str
    wins: int = 0
    losses: int = 0
    ties: int = 0

    def to_dict(self):
        return {
            'display_name': self.display_name,
            'wins': self.wins,
            'losses': self.losses,
            'ties': self.ties,
        }


@dataclass
class Session:
    id: str
    board: List[Optional[str]] = field(default_factory=empty_board)
    participants: List[Participant] = field(default_factory=list)
    turn: int = 0
    round_over: bool = False
    outcome: Optional[str] = None
    scores: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in SYMBOLS})
    next_starter: int = 0
    # Serializes every transition (and its broadcast) on this session
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def is_full(self) -> bool:
        return self.participant_count >= MAX_PARTICIPANTS

    @property
    def state(self) -> str:
        if not self.is_full:
            return 'waiting'
        return 'round-over' if self.round_over else 'active'

    def participant_at(self, index: int) -> Optional[Participant]:
        for p in self.participants:
            if p.index == index:
                return p
        return None

    def participant_for(self, connection_id: str) -> Optional[Participant]:
        for p in self.participants:
            if p.connection_id == connection_id:
                return p
        return None

    def lowest_free_index(self) -> Optional[int]:
        taken = {p.index for p in self.participants}
        for index in range(MAX_PARTICIPANTS):
            if index not in taken:
                return index
        return None

    def add_participant(self, participant: Participant) -> None:
        self.participants.append(participant)
        self.participants.sort(key=lambda p: p.index)

    def remove_participant(self, connection_id: str) -> Optional[Participant]:
        participant = self.participant_for(connection_id)
        if participant:
            self.participants.remove(participant)
        return participant

    def roster(self):
        return [p.to_dict() for p in self.participants]

    def summary(self):
        return {
            'id': self.id,
            'player_count': self.participant_count,
            'round_over': self.round_over,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'board': list(self.board),
            'turn': self.turn,
            'round_over': self.round_over,
            'outcome': self.outcome,
            'scores': dict(self.scores),
            'next_starter': self.next_starter,
            'roster': self.roster(),
            'player_count': self.participant_count,
            'state': self.state,
        }
