from flask import Blueprint, jsonify, request, current_app
from timekeeper import socketio
from timekeeper.services import sessions
from timekeeper.services.gateway import gateway
from timekeeper.services.scheduler import room_for, start_session_clock
from timekeeper.services.session import (
    InvariantViolation,
    NotFoundError,
    PersistenceError,
    SessionState,
    ValidationError,
)
from timekeeper.services.setup import parse_setup


games = Blueprint('games', __name__)


def _emit_update(game_id: int) -> None:
    socketio.emit('state_update', {'game_id': game_id}, to=room_for(game_id), namespace='/ws')


def _state(entry, **extra):
    payload = entry.controller.to_dict()
    payload['game_id'] = entry.game_id
    payload.update(extra)
    return payload


def _load(game_id: int):
    """Return (entry, None) or (None, error response)."""
    try:
        entry = sessions.load_active(game_id)
    except NotFoundError:
        return None, (jsonify({'error': 'Game not found'}), 404)
    except PersistenceError as exc:
        return None, (jsonify({'error': str(exc), 'retryable': True}), 503)
    if entry.controller.state is SessionState.ACTIVE:
        start_session_clock(current_app._get_current_object(), entry)
    return entry, None


def _conflict(exc: InvariantViolation):
    current_app.logger.info(f"[conflict] {exc}")
    return jsonify({'error': str(exc)}), 409


@games.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True)
    try:
        setup = parse_setup(data, min_players=int(current_app.config.get('MIN_PLAYERS', 1)))
    except ValidationError as exc:
        return jsonify(exc.to_dict()), 400

    result = gateway.create_session(setup)
    if not result:
        return jsonify({'error': 'Failed to create game. Please try again.', 'retryable': True}), 503

    entry, error = _load(result.value)
    if error:
        return error
    return jsonify(_state(entry)), 201


@games.route('/<int:game_id>/state', methods=['GET'])
def get_game_state(game_id):
    entry, error = _load(game_id)
    if error:
        return error
    with entry.lock:
        return jsonify(_state(entry))


@games.route('/<int:game_id>/toggle', methods=['POST'])
def toggle_run(game_id):
    entry, error = _load(game_id)
    if error:
        return error
    with entry.lock:
        try:
            running = entry.controller.toggle_run()
        except InvariantViolation as exc:
            return _conflict(exc)
        snapshot = entry.controller.snapshot()

    saved = None
    if not running:
        # Pausing is a natural checkpoint
        saved = gateway.save_session_snapshot(game_id, snapshot).ok
    _emit_update(game_id)
    with entry.lock:
        return jsonify(_state(entry, saved=saved))


@games.route('/<int:game_id>/vp', methods=['POST'])
def set_pending_vp(game_id):
    data = request.get_json(silent=True) or {}
    try:
        player_id = int(data.get('player_id'))
        value = int(data.get('value'))
    except (TypeError, ValueError):
        return jsonify({'error': 'player_id and integer value are required'}), 400

    entry, error = _load(game_id)
    if error:
        return error
    with entry.lock:
        if player_id not in {p.id for p in entry.controller.players}:
            return jsonify({'error': 'Invalid player'}), 400
        try:
            pending = entry.controller.set_pending_vp(player_id, value)
        except InvariantViolation as exc:
            return _conflict(exc)
    _emit_update(game_id)
    with entry.lock:
        return jsonify(_state(entry, pending_vp=pending))


@games.route('/<int:game_id>/vp/apply', methods=['POST'])
def apply_pending_vp(game_id):
    entry, error = _load(game_id)
    if error:
        return error
    with entry.lock:
        try:
            applied = entry.controller.apply_pending_vp()
        except InvariantViolation as exc:
            return _conflict(exc)
        player = entry.controller.current_player
        snapshot = entry.controller.snapshot()

    saved = None
    if applied:
        saved = gateway.save_turn_progress(game_id, player.id, player.total_vp, snapshot).ok
    _emit_update(game_id)
    with entry.lock:
        return jsonify(_state(entry, applied=applied, saved=saved))


@games.route('/<int:game_id>/end-turn', methods=['POST'])
def end_turn(game_id):
    entry, error = _load(game_id)
    if error:
        return error
    with entry.lock:
        try:
            turn = entry.controller.end_turn()
        except InvariantViolation as exc:
            return _conflict(exc)
        total_vp = entry.controller.scoreboard.get(turn.player_id).total_vp

    # Best-effort; a failed write is reported, not retried
    saved = gateway.append_turn(game_id, turn).ok
    if turn.vp_deltas:
        saved = gateway.update_player_totals(game_id, turn.player_id, total_vp).ok and saved
    current_app.logger.info(
        f"[turn-end] game={game_id} player={turn.player_id} turn={turn.turn_number} duration={turn.duration} saved={saved}"
    )
    _emit_update(game_id)
    with entry.lock:
        return jsonify(_state(entry, turn=turn.to_dict(), saved=saved))


@games.route('/<int:game_id>/end', methods=['POST'])
def end_game(game_id):
    entry, error = _load(game_id)
    if error:
        return error
    with entry.lock:
        try:
            result = entry.controller.end_game(gateway, game_id)
        except InvariantViolation as exc:
            return _conflict(exc)
        payload = _state(entry, saved=result.ok)

    if not result:
        payload['error'] = 'Failed to save game. Please try again.'
        payload['retryable'] = True
        return jsonify(payload), 503
    sessions.deactivate(game_id)
    _emit_update(game_id)
    return jsonify(payload)


@games.route('/<int:game_id>/reset', methods=['POST'])
def reset_session(game_id):
    data = request.get_json(silent=True) or {}
    entry, error = _load(game_id)
    if error:
        return error
    with entry.lock:
        result = entry.controller.reset(gateway if data.get('save') else None, game_id)
    sessions.deactivate(game_id)
    _emit_update(game_id)
    return jsonify({'game_id': game_id, 'reset': True, 'saved': result.ok if result is not None else None})
