"""Persistence gateway contract used by the session controller.

Every operation returns a GatewayResult instead of raising, so a failed save
never escapes as an exception. Callers decide whether to retry.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .errors import PersistenceError
from .ledger import TurnRecord
from .scoring import SessionPlayer

STATUS_IN_PROGRESS = 'in_progress'
STATUS_COMPLETED = 'completed'
STATUS_ABANDONED = 'abandoned'


@dataclass
class GatewayResult:
    ok: bool
    value: Any = None
    error: Optional[PersistenceError] = None

    @classmethod
    def success(cls, value=None) -> 'GatewayResult':
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: PersistenceError) -> 'GatewayResult':
        return cls(ok=False, error=error)

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class SessionSnapshot:
    turn_elapsed: int = 0
    game_elapsed: int = 0
    total_elapsed: int = 0
    current_player_id: Any = None
    round_counter: int = 0
    turn_number: int = 1
    status: str = STATUS_IN_PROGRESS
    turn_vp_deltas: List[int] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def clock_dict(self) -> Dict[str, int]:
        return {
            'turn_elapsed': self.turn_elapsed,
            'game_elapsed': self.game_elapsed,
            'total_elapsed': self.total_elapsed,
        }


@dataclass
class FinalSnapshot:
    players: List[SessionPlayer]
    turns: List[TurnRecord]
    session: SessionSnapshot


@dataclass
class LoadedSession:
    players: List[SessionPlayer]
    turns: List[TurnRecord] = field(default_factory=list)
    snapshot: SessionSnapshot = field(default_factory=SessionSnapshot)


class PersistenceGateway(ABC):

    @abstractmethod
    def create_session(self, setup) -> GatewayResult:
        """Create a durable session for a validated setup; value is its id."""

    @abstractmethod
    def load_session(self, session_id) -> GatewayResult:
        """Value is a LoadedSession; error is NotFoundError for unknown ids."""

    @abstractmethod
    def append_turn(self, session_id, turn: TurnRecord) -> GatewayResult:
        ...

    @abstractmethod
    def replace_turns(self, session_id, turns: Sequence[TurnRecord]) -> GatewayResult:
        ...

    @abstractmethod
    def update_player_totals(self, session_id, player_id, total_vp: int) -> GatewayResult:
        ...

    @abstractmethod
    def save_session_snapshot(self, session_id, snapshot: SessionSnapshot) -> GatewayResult:
        ...

    def save_turn_progress(self, session_id, player_id, total_vp: int,
                           snapshot: SessionSnapshot) -> GatewayResult:
        """Persist a mid-turn VP commit: the player's total plus the snapshot
        carrying the turn's applied deltas, so a reload keeps both in step.
        """
        result = self.update_player_totals(session_id, player_id, total_vp)
        if not result:
            return result
        return self.save_session_snapshot(session_id, snapshot)

    def save_session(self, session_id, final: FinalSnapshot) -> GatewayResult:
        """Persist totals, the full ledger and the snapshot.

        Implementations backed by a transactional store should override this
        to write everything atomically.
        """
        for player in final.players:
            result = self.update_player_totals(session_id, player.id, player.total_vp)
            if not result:
                return result
        result = self.replace_turns(session_id, final.turns)
        if not result:
            return result
        return self.save_session_snapshot(session_id, final.session)
