from datetime import datetime, timezone
import json

from timekeeper import db


def _utcnow():
    return datetime.now(timezone.utc)


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    location = db.Column(db.String(128), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(32), default='in_progress', nullable=False)  # in_progress, completed, abandoned
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    players = db.relationship('Player', back_populates='game', order_by='Player.position',
                              cascade='all, delete-orphan')
    turns = db.relationship('Turn', back_populates='game', order_by='Turn.turn_number',
                            cascade='all, delete-orphan')
    stats = db.relationship('GameStats', back_populates='game', uselist=False,
                            cascade='all, delete-orphan')

    def to_dict(self, include_players=True):
        data = {
            'id': self.id,
            'name': self.name,
            'location': self.location,
            'notes': self.notes,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_players:
            data['players'] = [p.to_dict() for p in self.players]
        return data


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(64), nullable=False)
    side = db.Column(db.String(64), nullable=True)
    side_icon = db.Column(db.String(512), nullable=True)
    color = db.Column(db.String(16), nullable=True)
    background_url = db.Column(db.String(512), nullable=True)
    total_vp = db.Column(db.Integer, default=0, nullable=False)
    turn_vp = db.Column(db.Integer, default=0, nullable=False)
    game = db.relationship('Game', back_populates='players')

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'position': self.position,
            'name': self.name,
            'side': self.side,
            'side_icon': self.side_icon,
            'color': self.color,
            'background_url': self.background_url,
            'total_vp': self.total_vp,
        }


class Turn(db.Model):
    __tablename__ = 'turn'
    __table_args__ = (db.UniqueConstraint('game_id', 'turn_number', name='uq_turn_game_turn_number'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    turn_number = db.Column(db.Integer, nullable=False)
    duration = db.Column(db.Integer, nullable=False)  # ms
    timestamp = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    game = db.relationship('Game', back_populates='turns')
    player = db.relationship('Player')
    vp_changes = db.relationship('VPChange', back_populates='turn', order_by='VPChange.id',
                                 cascade='all, delete-orphan')


class VPChange(db.Model):
    __tablename__ = 'vp_change'
    id = db.Column(db.Integer, primary_key=True)
    turn_id = db.Column(db.Integer, db.ForeignKey('turn.id'), nullable=False, index=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    vp_amount = db.Column(db.Integer, nullable=False)
    turn = db.relationship('Turn', back_populates='vp_changes')


class GameStats(db.Model):
    __tablename__ = 'game_stats'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, unique=True)
    current_turn_number = db.Column(db.Integer, default=1, nullable=False)
    current_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)
    round_counter = db.Column(db.Integer, default=0, nullable=False)
    turn_elapsed_time = db.Column(db.Integer, default=0, nullable=False)
    game_elapsed_time = db.Column(db.Integer, default=0, nullable=False)
    total_elapsed_time = db.Column(db.Integer, default=0, nullable=False)
    current_turn_vp_deltas = db.Column(db.JSON, default=list, nullable=False)  # applied before end turn
    last_updated = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    game = db.relationship('Game', back_populates='stats')


class SavedSetup(db.Model):
    """Key-value store for a setup payload, restored at the next session start."""
    __tablename__ = 'saved_setup'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), unique=True, nullable=False, index=True)
    payload = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    @property
    def data(self):
        return json.loads(self.payload)

    def to_dict(self):
        return {
            'key': self.key,
            'payload': self.data,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
