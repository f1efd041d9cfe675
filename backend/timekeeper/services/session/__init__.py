"""Session domain: clock, turn ledger, score board and the controller.

Nothing in this package imports Flask or the database; HTTP routes, socket
handlers and the scheduler drive it through SessionController.
"""

from .clock import Clock, QUANTUM_MS, format_elapsed
from .controller import SessionController, SessionState
from .errors import InvariantViolation, NotFoundError, PersistenceError, TimekeeperError, ValidationError
from .gateway import (
    FinalSnapshot,
    GatewayResult,
    LoadedSession,
    PersistenceGateway,
    SessionSnapshot,
    STATUS_ABANDONED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
)
from .ledger import TurnLedger, TurnRecord
from .scoring import PlayerStats, ScoreBoard, SessionPlayer, VPPolicy, compute_player_stats
