from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

QUANTUM_MS = 1000


@dataclass
class Clock:
    """Turn, game and total elapsed counters, in milliseconds.

    turn_elapsed and game_elapsed only advance while running; total_elapsed
    advances on every tick_total() so paused time is still reported.
    """
    turn_elapsed: int = 0
    game_elapsed: int = 0
    total_elapsed: int = 0
    running: bool = False

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def tick(self) -> None:
        if not self.running:
            return
        self.turn_elapsed += QUANTUM_MS
        self.game_elapsed += QUANTUM_MS

    def tick_total(self) -> None:
        self.total_elapsed += QUANTUM_MS

    def reset_turn(self) -> None:
        self.turn_elapsed = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Clock':
        data = data or {}
        # A reloaded clock always starts paused
        return cls(
            turn_elapsed=int(data.get('turn_elapsed') or 0),
            game_elapsed=int(data.get('game_elapsed') or 0),
            total_elapsed=int(data.get('total_elapsed') or 0),
        )


def format_elapsed(ms: int) -> str:
    """Render milliseconds as HH:MM:SS."""
    total_seconds = max(0, int(ms)) // 1000
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
