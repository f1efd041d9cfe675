from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TurnRecord:
    """One completed turn. Immutable once appended to a ledger."""
    turn_number: int
    player_id: Any
    duration: int  # ms
    timestamp: datetime = field(default_factory=utcnow)
    vp_deltas: Tuple[int, ...] = ()

    @property
    def net_vp(self) -> int:
        return sum(self.vp_deltas)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'turn_number': self.turn_number,
            'player_id': self.player_id,
            'duration': self.duration,
            'timestamp': self.timestamp.isoformat(),
            'vp_deltas': list(self.vp_deltas),
            'net_vp': self.net_vp,
        }


class TurnLedger:
    """Append-only record of completed turns.

    There is no edit or delete; a corrected history replaces the whole
    ledger when a session is reloaded.
    """

    def __init__(self, turns: Optional[Iterable[TurnRecord]] = None):
        self._turns = list(turns or [])

    def append(self, turn: TurnRecord) -> TurnRecord:
        self._turns.append(turn)
        return turn

    def all(self) -> Tuple[TurnRecord, ...]:
        return tuple(self._turns)

    def for_player(self, player_id) -> Tuple[TurnRecord, ...]:
        return tuple(t for t in self._turns if t.player_id == player_id)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[TurnRecord]:
        return iter(tuple(self._turns))
