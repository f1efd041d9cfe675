"""Turn, clock and VP state machine for one game session.

IDLE -> ACTIVE(paused) <-> ACTIVE(running) -> ENDED

The controller is a plain object owned by one caller. It does no I/O of its
own except through the PersistenceGateway handed to end_game/reset, and none
of its methods are safe to call concurrently.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .clock import Clock
from .errors import InvariantViolation, ValidationError
from .gateway import (
    FinalSnapshot,
    GatewayResult,
    PersistenceGateway,
    SessionSnapshot,
    STATUS_ABANDONED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
)
from .ledger import TurnLedger, TurnRecord, utcnow
from .scoring import (
    PlayerStats,
    ScoreBoard,
    SessionPlayer,
    VPPolicy,
    compute_player_stats,
    crossed_threshold,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = 'idle'
    ACTIVE = 'active'
    ENDED = 'ended'


class SessionController:

    def __init__(self, victory_threshold: Optional[int] = 30, vp_policy: Optional[VPPolicy] = None):
        self.victory_threshold = victory_threshold
        self.vp_policy = vp_policy or VPPolicy()
        self._clear()

    def _clear(self) -> None:
        self.state = SessionState.IDLE
        self.clock = Clock()
        self.ledger = TurnLedger()
        self.scoreboard = ScoreBoard(policy=self.vp_policy)
        self.current_index = 0
        self.round_counter = 0
        self._turn_deltas: List[int] = []
        self._stats: Dict[Any, PlayerStats] = {}
        self._stats_stale = True

    # ---- properties ----

    @property
    def players(self) -> List[SessionPlayer]:
        return self.scoreboard.players

    @property
    def running(self) -> bool:
        return self.clock.running

    @property
    def completed(self) -> bool:
        return self.state is SessionState.ENDED

    @property
    def current_player(self) -> Optional[SessionPlayer]:
        players = self.players
        if self.state is not SessionState.ACTIVE or not players:
            return None
        return players[self.current_index]

    @property
    def turn_number(self) -> int:
        return len(self.ledger) + 1

    @property
    def stats(self) -> Dict[Any, PlayerStats]:
        """Per-player statistics, recomputed only if marked stale."""
        if self._stats_stale:
            self.recompute_stats()
        return self._stats

    # ---- lifecycle ----

    def load(self, players: Iterable[SessionPlayer], turns: Iterable[TurnRecord] = (),
             clock: Optional[Dict[str, Any]] = None, completed: bool = False,
             turn_deltas: Iterable[int] = ()) -> None:
        """Load a session from setup data or a stored snapshot.

        Index and round counter are derived from the ledger so a reload
        always agrees with the turns actually recorded.
        turn_deltas are the VP changes already applied during the turn in
        progress; they are carried into the next ledger entry.
        """
        players = list(players)
        if not players:
            self._clear()
            raise ValidationError('A session needs at least one player', ['players'])

        self._clear()
        self.scoreboard = ScoreBoard(players, policy=self.vp_policy)
        self.ledger = TurnLedger(turns)
        self.clock = Clock.from_dict(clock)
        committed = len(self.ledger)
        self.current_index = committed % len(players)
        self.round_counter = committed // len(players)
        self.state = SessionState.ENDED if completed else SessionState.ACTIVE
        if not completed:
            self._turn_deltas = [int(d) for d in turn_deltas]
        self.recompute_stats()
        logger.info("[session-load] players=%d turns=%d completed=%s", len(players), committed, completed)

    def reset(self, gateway: Optional[PersistenceGateway] = None, session_id=None) -> Optional[GatewayResult]:
        """Discard in-memory state and return to IDLE.

        When a gateway is given an abandoned snapshot is saved first; the
        reset happens regardless of the save outcome, which is returned.
        """
        result = None
        if gateway is not None and self.state is SessionState.ACTIVE:
            self.clock.stop()
            result = gateway.save_session_snapshot(session_id, self.snapshot(status=STATUS_ABANDONED))
            if not result:
                logger.warning("[session-reset] session=%s abandon save failed: %s", session_id, result.error)
        self._clear()
        return result

    # ---- clock ----

    def tick(self) -> None:
        if self.state is not SessionState.ACTIVE:
            return
        self.clock.tick_total()
        self.clock.tick()

    def toggle_run(self) -> bool:
        self._require_active()
        if self.clock.running:
            self._pause()
        else:
            self.clock.start()
        return self.clock.running

    def _pause(self) -> None:
        self.clock.stop()
        self.recompute_stats()

    # ---- victory points ----

    def set_pending_vp(self, player_id, value: int) -> int:
        self._require_active()
        return self.scoreboard.set_pending_vp(player_id, value)

    def apply_pending_vp(self) -> int:
        """Commit the current player's pending VP without ending the turn."""
        player = self._require_current_player()
        before = player.total_vp
        applied = self._commit_current(player)
        self._check_victory(player, before)
        return applied

    def _commit_current(self, player: SessionPlayer) -> int:
        if player.pending_vp == 0:
            return 0
        applied = self.scoreboard.commit_pending_vp(player.id)
        if applied != 0:
            self._turn_deltas.append(applied)
        return applied

    def _check_victory(self, player: SessionPlayer, before: int) -> None:
        if not self.clock.running:
            return
        if crossed_threshold(before, player.total_vp, self.victory_threshold):
            logger.info("[victory-pause] threshold=%s player=%s total=%d",
                        self.victory_threshold, player.id, player.total_vp)
            self._pause()

    # ---- turns ----

    def end_turn(self) -> TurnRecord:
        player = self._require_current_player()
        if not self.clock.running:
            raise InvariantViolation('Cannot end a turn while the clock is paused')

        # Commit before appending so the ledger entry carries the final deltas
        before = player.total_vp
        self._commit_current(player)
        turn = self.ledger.append(TurnRecord(
            turn_number=len(self.ledger) + 1,
            player_id=player.id,
            duration=self.clock.turn_elapsed,
            timestamp=utcnow(),
            vp_deltas=tuple(self._turn_deltas),
        ))
        self._turn_deltas = []

        self.current_index = (self.current_index + 1) % len(self.players)
        if self.current_index == 0:
            self.round_counter += 1
        self.clock.reset_turn()
        self._stats_stale = True
        logger.info("[turn-end] player=%s turn=%d duration=%d deltas=%s",
                    player.id, turn.turn_number, turn.duration, list(turn.vp_deltas))

        self._check_victory(player, before)
        return turn

    # ---- end of game ----

    def end_game(self, gateway: PersistenceGateway, session_id) -> GatewayResult:
        self._require_active()
        self._pause()
        final = FinalSnapshot(
            players=self.players,
            turns=list(self.ledger.all()),
            session=self.snapshot(status=STATUS_COMPLETED),
        )
        result = gateway.save_session(session_id, final)
        if result:
            self.state = SessionState.ENDED
            logger.info("[game-end] session=%s turns=%d", session_id, len(self.ledger))
        else:
            logger.warning("[game-end] session=%s save failed: %s", session_id, result.error)
        return result

    # ---- stats and views ----

    def recompute_stats(self) -> Dict[Any, PlayerStats]:
        self._stats = compute_player_stats(self.ledger.all(), [p.id for p in self.players])
        self._stats_stale = False
        return self._stats

    def snapshot(self, status: Optional[str] = None) -> SessionSnapshot:
        if status is None:
            status = STATUS_COMPLETED if self.completed else STATUS_IN_PROGRESS
        current = self.current_player
        return SessionSnapshot(
            turn_elapsed=self.clock.turn_elapsed,
            game_elapsed=self.clock.game_elapsed,
            total_elapsed=self.clock.total_elapsed,
            current_player_id=current.id if current else None,
            round_counter=self.round_counter,
            turn_number=self.turn_number,
            status=status,
            turn_vp_deltas=list(self._turn_deltas),
        )

    def to_dict(self) -> Dict[str, Any]:
        stats = self.stats
        current = self.current_player
        leader = self.scoreboard.leader()
        players = []
        for p in self.players:
            pd = p.to_dict()
            pd['stats'] = stats.get(p.id, PlayerStats()).to_dict()
            players.append(pd)
        return {
            'state': self.state.value,
            'running': self.running,
            'current_index': self.current_index,
            'current_player_id': current.id if current else None,
            'leader_id': leader.id if leader else None,
            'round_counter': self.round_counter,
            'turn_number': self.turn_number,
            'victory_threshold': self.victory_threshold,
            'clock': self.clock.to_dict(),
            'current_turn_vp_deltas': list(self._turn_deltas),
            'players': players,
            'turns': [t.to_dict() for t in self.ledger],
        }

    # ---- guards ----

    def _require_active(self) -> None:
        if self.state is not SessionState.ACTIVE:
            raise InvariantViolation(f"Session is {self.state.value}, not active")

    def _require_current_player(self) -> SessionPlayer:
        self._require_active()
        player = self.current_player
        if player is None:
            raise InvariantViolation('No current player')
        return player
