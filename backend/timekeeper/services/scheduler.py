from flask import Flask

from timekeeper import socketio
from .gateway import gateway
from .sessions import ActiveSession


def room_for(game_id: int) -> str:
    return f"game:{game_id}"


def start_session_clock(app: Flask, entry: ActiveSession) -> None:
    """Start the once-per-second clock task for an active session.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single task per registry entry
    - Exits once the entry is cancelled (reset, end of game, reload)
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    if entry.clock_started or entry.cancelled:
        return
    entry.clock_started = True
    app.logger.info(f"[clock-start] game={entry.game_id}")
    socketio.start_background_task(_clock_worker, app, entry)


def _clock_worker(app: Flask, entry: ActiveSession) -> None:
    interval = float(app.config.get('CLOCK_TICK_SEC', 1))
    running_since_save = 0.0
    while not entry.cancelled:
        socketio.sleep(interval)
        if entry.cancelled:
            break
        running_since_save = clock_step(app, entry, running_since_save, interval)
    app.logger.info(f"[clock-stop] game={entry.game_id}")


def clock_step(app: Flask, entry: ActiveSession, running_since_save: float = 0.0, interval: float = 1.0) -> float:
    """Advance one tick, broadcast the clock and start an autosave when due.

    Returns the running time accumulated since the last autosave.
    """
    with entry.lock:
        controller = entry.controller
        controller.tick()
        running = controller.running
        payload = {'game_id': entry.game_id, 'running': running, **controller.clock.to_dict()}
        snapshot = controller.snapshot() if running else None

    socketio.emit('clock', payload, to=room_for(entry.game_id), namespace='/ws')

    if not running:
        return running_since_save
    running_since_save += interval
    autosave_every = int(app.config.get('AUTOSAVE_INTERVAL_SEC', 30))
    if autosave_every > 0 and running_since_save >= autosave_every:
        if app.config.get('TESTING'):
            autosave(app, entry.game_id, snapshot)
        else:
            socketio.start_background_task(autosave, app, entry.game_id, snapshot)
        return 0.0
    return running_since_save


def autosave(app: Flask, game_id: int, snapshot) -> bool:
    """Fire-and-forget snapshot save. Failures are logged, never raised."""
    with app.app_context():
        result = gateway.save_session_snapshot(game_id, snapshot)
        if result:
            app.logger.info(f"[autosave] game={game_id} game_elapsed={snapshot.game_elapsed}")
        else:
            app.logger.warning(f"[autosave-fail] game={game_id} error={result.error}")
        return result.ok
