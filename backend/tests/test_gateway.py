from sqlalchemy.exc import OperationalError

from timekeeper import db
from timekeeper.models import Game, Turn, VPChange
from timekeeper.services.gateway import gateway
from timekeeper.services.session import (
    FinalSnapshot,
    NotFoundError,
    SessionSnapshot,
    STATUS_COMPLETED,
    TurnRecord,
)
from timekeeper.services.setup import parse_setup


def _create(setup_payload):
    result = gateway.create_session(parse_setup(setup_payload))
    assert result.ok
    return result.value


def test_create_and_load_session(flask_app, setup_payload):
    game_id = _create(setup_payload)
    loaded = gateway.load_session(game_id).value
    assert [p.name for p in loaded.players] == ['Alice', 'Bob']
    assert loaded.players[0].color == '#FF3B30'
    assert loaded.turns == []
    assert loaded.snapshot.turn_number == 1
    assert not loaded.snapshot.completed


def test_load_unknown_session_is_not_found(flask_app):
    result = gateway.load_session(404)
    assert not result.ok
    assert isinstance(result.error, NotFoundError)


def test_append_turn_round_trips_vp_deltas(flask_app, setup_payload):
    game_id = _create(setup_payload)
    alice = gateway.load_session(game_id).value.players[0]
    assert gateway.append_turn(game_id, TurnRecord(1, alice.id, 12000, vp_deltas=(4, -1))).ok

    turns = gateway.load_session(game_id).value.turns
    assert len(turns) == 1
    assert turns[0].duration == 12000
    assert turns[0].vp_deltas == (4, -1)
    assert turns[0].net_vp == 3
    assert VPChange.query.filter_by(game_id=game_id).count() == 2


def test_append_turn_for_foreign_player_fails(flask_app, setup_payload):
    game_id = _create(setup_payload)
    result = gateway.append_turn(game_id, TurnRecord(1, 9999, 1000))
    assert not result.ok
    assert Turn.query.count() == 0


def test_replace_turns_swaps_whole_ledger(flask_app, setup_payload):
    game_id = _create(setup_payload)
    players = gateway.load_session(game_id).value.players
    gateway.append_turn(game_id, TurnRecord(1, players[0].id, 1000, vp_deltas=(9,)))

    replacement = [
        TurnRecord(1, players[0].id, 2000, vp_deltas=(1,)),
        TurnRecord(2, players[1].id, 3000),
    ]
    assert gateway.replace_turns(game_id, replacement).ok
    turns = gateway.load_session(game_id).value.turns
    assert [(t.duration, t.vp_deltas) for t in turns] == [(2000, (1,)), (3000, ())]


def test_update_totals_and_snapshot(flask_app, setup_payload):
    game_id = _create(setup_payload)
    alice = gateway.load_session(game_id).value.players[0]
    assert gateway.update_player_totals(game_id, alice.id, 12).ok
    snapshot = SessionSnapshot(turn_elapsed=1000, game_elapsed=5000, total_elapsed=8000,
                               current_player_id=alice.id, round_counter=2, turn_number=5)
    assert gateway.save_session_snapshot(game_id, snapshot).ok

    loaded = gateway.load_session(game_id).value
    assert loaded.players[0].total_vp == 12
    assert loaded.snapshot.clock_dict() == {'turn_elapsed': 1000, 'game_elapsed': 5000, 'total_elapsed': 8000}
    assert loaded.snapshot.round_counter == 2


def test_save_session_marks_completed(flask_app, setup_payload):
    game_id = _create(setup_payload)
    players = gateway.load_session(game_id).value.players
    players[1].total_vp = 7
    final = FinalSnapshot(
        players=players,
        turns=[TurnRecord(1, players[1].id, 4000, vp_deltas=(7,))],
        session=SessionSnapshot(status=STATUS_COMPLETED, turn_number=2),
    )
    assert gateway.save_session(game_id, final).ok
    game = db.session.get(Game, game_id)
    assert game.status == STATUS_COMPLETED
    assert game.players[1].total_vp == 7
    assert len(game.turns) == 1


def test_database_errors_become_failed_results(flask_app, setup_payload, monkeypatch):
    game_id = _create(setup_payload)

    def broken_commit():
        raise OperationalError('UPDATE player', {}, Exception('database is locked'))

    monkeypatch.setattr(db.session(), 'commit', broken_commit)
    result = gateway.update_player_totals(game_id, 1, 3)
    assert not result.ok
    assert result.error.retryable


def test_save_turn_progress_writes_total_and_turn_deltas(flask_app, setup_payload):
    game_id = _create(setup_payload)
    alice = gateway.load_session(game_id).value.players[0]
    snapshot = SessionSnapshot(current_player_id=alice.id, turn_number=1, turn_vp_deltas=[4, -1])
    assert gateway.save_turn_progress(game_id, alice.id, 3, snapshot).ok

    loaded = gateway.load_session(game_id).value
    assert loaded.players[0].total_vp == 3
    assert loaded.snapshot.turn_vp_deltas == [4, -1]
