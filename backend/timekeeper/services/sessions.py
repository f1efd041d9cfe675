"""In-process registry of active session controllers.

One entry per game id. Every mutation of an entry's controller happens under
entry.lock; the clock task and HTTP handlers are the only writers.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from flask import current_app

from .gateway import gateway
from .session.controller import SessionController, SessionState
from .session.errors import PersistenceError
from .session.scoring import VPPolicy

_active: Dict[int, 'ActiveSession'] = {}
_registry_lock = threading.Lock()


@dataclass
class ActiveSession:
    game_id: int
    controller: SessionController
    lock: threading.RLock = field(default_factory=threading.RLock)
    cancelled: bool = False
    clock_started: bool = False


def build_controller(config) -> SessionController:
    return SessionController(
        victory_threshold=config.get('VICTORY_THRESHOLD', 30),
        vp_policy=VPPolicy(config.get('PENDING_VP_MIN'), config.get('PENDING_VP_MAX')),
    )


def get_active(game_id: int) -> Optional[ActiveSession]:
    return _active.get(game_id)


def deactivate(game_id: int) -> Optional[ActiveSession]:
    """Remove an entry and cancel its clock task. In-flight saves are left alone."""
    with _registry_lock:
        entry = _active.pop(game_id, None)
    if entry is not None:
        entry.cancelled = True
    return entry


def clear() -> None:
    with _registry_lock:
        for entry in _active.values():
            entry.cancelled = True
        _active.clear()


def load_active(game_id: int) -> ActiveSession:
    """Return the active entry, loading it from the gateway if needed.

    Completed games are returned as a detached read-only entry and are not
    kept in the registry. When two callers load the same game at once the
    first registered entry wins and the other load is discarded.

    Raises NotFoundError for unknown games and PersistenceError when the
    store cannot be read.
    """
    entry = get_active(game_id)
    if entry is not None:
        return entry
    result = gateway.load_session(game_id)
    if not result:
        raise result.error or PersistenceError(f"Could not load game {game_id}")
    loaded = result.value
    snapshot = loaded.snapshot
    # Deltas in the snapshot only belong to the turn after the last recorded one
    in_progress = snapshot.turn_number == len(loaded.turns) + 1
    controller = build_controller(current_app.config)
    controller.load(
        loaded.players,
        loaded.turns,
        clock=snapshot.clock_dict(),
        completed=snapshot.completed,
        turn_deltas=snapshot.turn_vp_deltas if in_progress else (),
    )
    if controller.state is SessionState.ENDED:
        return ActiveSession(game_id=game_id, controller=controller)

    with _registry_lock:
        existing = _active.get(game_id)
        if existing is not None:
            return existing
        entry = ActiveSession(game_id=game_id, controller=controller)
        _active[game_id] = entry
    current_app.logger.info(f"[session-activate] game={game_id} turns={len(loaded.turns)}")
    return entry
