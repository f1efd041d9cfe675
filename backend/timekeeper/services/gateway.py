"""SQLAlchemy implementation of the persistence gateway.

All writes go through _transaction(), which commits on success and rolls
back on any SQLAlchemyError, turning it into a failed GatewayResult.
"""

from typing import Sequence

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from timekeeper import db
from timekeeper.models import Game, GameStats, Player, Turn, VPChange
from .session.errors import NotFoundError, PersistenceError
from .session.gateway import (
    FinalSnapshot,
    GatewayResult,
    LoadedSession,
    PersistenceGateway,
    SessionSnapshot,
    STATUS_IN_PROGRESS,
)
from .session.ledger import TurnRecord
from .session.scoring import SessionPlayer


class SqlAlchemyGateway(PersistenceGateway):

    def _transaction(self, op: str, session_id, fn) -> GatewayResult:
        try:
            value = fn()
            db.session.commit()
        except NotFoundError as exc:
            db.session.rollback()
            return GatewayResult.failure(exc)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(f"[gateway-fail] op={op} game={session_id} error={exc}")
            return GatewayResult.failure(PersistenceError(f"{op} failed: {exc}"))
        return GatewayResult.success(value)

    def _game(self, session_id) -> Game:
        game = db.session.get(Game, session_id)
        if game is None:
            raise NotFoundError(f"Game {session_id} not found")
        return game

    def _player(self, session_id, player_id) -> Player:
        player = Player.query.filter_by(id=player_id, game_id=session_id).first()
        if player is None:
            raise NotFoundError(f"Player {player_id} not found in game {session_id}")
        return player

    # ---- create / load ----

    def create_session(self, setup) -> GatewayResult:
        def _create():
            game = Game(name=setup.game_name, location=setup.location, notes=setup.notes,
                        status=STATUS_IN_PROGRESS)
            for position, p in enumerate(setup.players):
                game.players.append(Player(
                    position=position,
                    name=p.name,
                    side=p.side,
                    side_icon=p.side_icon,
                    color=p.color,
                    background_url=p.background_url,
                    total_vp=0,
                    turn_vp=0,
                ))
            game.stats = GameStats(current_turn_number=1, current_turn_vp_deltas=[])
            db.session.add(game)
            db.session.flush()
            current_app.logger.info(f"[game-create] game={game.id} players={len(game.players)}")
            return game.id
        return self._transaction('create_session', None, _create)

    def load_session(self, session_id) -> GatewayResult:
        try:
            game = self._game(session_id)
            players = [
                SessionPlayer(
                    id=p.id,
                    name=p.name,
                    side=p.side,
                    side_icon=p.side_icon,
                    color=p.color,
                    background_url=p.background_url,
                    total_vp=p.total_vp or 0,
                    pending_vp=p.turn_vp or 0,
                )
                for p in game.players
            ]
            turns = [
                TurnRecord(
                    turn_number=t.turn_number,
                    player_id=t.player_id,
                    duration=t.duration,
                    timestamp=t.timestamp,
                    vp_deltas=tuple(c.vp_amount for c in t.vp_changes),
                )
                for t in game.turns
            ]
            stats = game.stats
            snapshot = SessionSnapshot(status=game.status)
            if stats is not None:
                snapshot.turn_elapsed = stats.turn_elapsed_time
                snapshot.game_elapsed = stats.game_elapsed_time
                snapshot.total_elapsed = stats.total_elapsed_time
                snapshot.current_player_id = stats.current_player_id
                snapshot.round_counter = stats.round_counter
                snapshot.turn_number = stats.current_turn_number
                snapshot.turn_vp_deltas = list(stats.current_turn_vp_deltas or [])
        except NotFoundError as exc:
            return GatewayResult.failure(exc)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(f"[gateway-fail] op=load_session game={session_id} error={exc}")
            return GatewayResult.failure(PersistenceError(f"load_session failed: {exc}"))
        return GatewayResult.success(LoadedSession(players=players, turns=turns, snapshot=snapshot))

    # ---- ledger ----

    def _add_turn(self, session_id, turn: TurnRecord) -> Turn:
        self._player(session_id, turn.player_id)
        row = Turn(
            game_id=session_id,
            player_id=turn.player_id,
            turn_number=turn.turn_number,
            duration=turn.duration,
            timestamp=turn.timestamp,
        )
        for amount in turn.vp_deltas:
            row.vp_changes.append(VPChange(game_id=session_id, player_id=turn.player_id, vp_amount=amount))
        db.session.add(row)
        return row

    def _replace_turns(self, session_id, turns: Sequence[TurnRecord]) -> int:
        self._game(session_id)
        VPChange.query.filter_by(game_id=session_id).delete()
        Turn.query.filter_by(game_id=session_id).delete()
        db.session.flush()
        for turn in turns:
            self._add_turn(session_id, turn)
        return len(turns)

    def append_turn(self, session_id, turn: TurnRecord) -> GatewayResult:
        def _append():
            self._game(session_id)
            row = self._add_turn(session_id, turn)
            db.session.flush()
            return row.id
        return self._transaction('append_turn', session_id, _append)

    def replace_turns(self, session_id, turns: Sequence[TurnRecord]) -> GatewayResult:
        return self._transaction('replace_turns', session_id, lambda: self._replace_turns(session_id, turns))

    # ---- totals and snapshots ----

    def _update_total(self, session_id, player_id, total_vp: int, pending_vp: int = 0) -> int:
        player = self._player(session_id, player_id)
        player.total_vp = max(0, int(total_vp))
        player.turn_vp = int(pending_vp)
        db.session.add(player)
        return player.total_vp

    def update_player_totals(self, session_id, player_id, total_vp: int) -> GatewayResult:
        return self._transaction('update_player_totals', session_id,
                                 lambda: self._update_total(session_id, player_id, total_vp))

    def _write_snapshot(self, session_id, snapshot: SessionSnapshot) -> str:
        game = self._game(session_id)
        stats = game.stats or GameStats(game_id=game.id)
        stats.turn_elapsed_time = snapshot.turn_elapsed
        stats.game_elapsed_time = snapshot.game_elapsed
        stats.total_elapsed_time = snapshot.total_elapsed
        stats.current_player_id = snapshot.current_player_id
        stats.round_counter = snapshot.round_counter
        stats.current_turn_number = snapshot.turn_number
        stats.current_turn_vp_deltas = list(snapshot.turn_vp_deltas)
        game.stats = stats
        game.status = snapshot.status
        db.session.add(game)
        return game.status

    def save_session_snapshot(self, session_id, snapshot: SessionSnapshot) -> GatewayResult:
        return self._transaction('save_session_snapshot', session_id,
                                 lambda: self._write_snapshot(session_id, snapshot))

    def save_turn_progress(self, session_id, player_id, total_vp: int,
                           snapshot: SessionSnapshot) -> GatewayResult:
        def _save():
            self._update_total(session_id, player_id, total_vp)
            return self._write_snapshot(session_id, snapshot)
        return self._transaction('save_turn_progress', session_id, _save)

    def save_session(self, session_id, final: FinalSnapshot) -> GatewayResult:
        def _save():
            for p in final.players:
                self._update_total(session_id, p.id, p.total_vp, p.pending_vp)
            self._replace_turns(session_id, final.turns)
            return self._write_snapshot(session_id, final.session)
        result = self._transaction('save_session', session_id, _save)
        if result:
            current_app.logger.info(f"[game-save] game={session_id} status={result.value} turns={len(final.turns)}")
        return result


gateway = SqlAlchemyGateway()
