from moo import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import uuid


def utcnow():
    """Naive UTC timestamp, the form the database columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    code = db.Column(db.String(4), unique=True, nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='waiting')  # waiting, playing, finished
    empty_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    game = db.relationship('Game', back_populates='room', uselist=False, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'created_by': self.created_by,
            'status': self.status,
            'empty_at': _iso(self.empty_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    room_id = db.Column(db.String(36), db.ForeignKey('room.id', ondelete='CASCADE'), unique=True, nullable=False)
    player1_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    player2_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    player1_code = db.Column(db.String(4), nullable=True)
    player2_code = db.Column(db.String(4), nullable=True)
    current_round = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(16), nullable=False, default='code_selection')  # code_selection, playing, finished
    winner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    room = db.relationship('Room', back_populates='game')
    moves = db.relationship('Move', back_populates='game', cascade='all, delete-orphan')

    __table_args__ = (
        db.CheckConstraint('player1_id != player2_id', name='ck_game_distinct_players'),
    )

    def is_player(self, user_id):
        return user_id in (self.player1_id, self.player2_id)

    def to_dict(self, viewer_id=None):
        """Serialize the game; the opponent's secret stays hidden until the game ends."""
        reveal = self.status == 'finished'
        return {
            'id': self.id,
            'room_id': self.room_id,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'player1_code': self.player1_code if (reveal or viewer_id == self.player1_id) else None,
            'player2_code': self.player2_code if (reveal or viewer_id == self.player2_id) else None,
            'player1_ready': self.player1_code is not None,
            'player2_ready': self.player2_code is not None,
            'current_round': self.current_round,
            'status': self.status,
            'winner_id': self.winner_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Move(db.Model):
    __tablename__ = 'move'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    game_id = db.Column(db.String(36), db.ForeignKey('game.id', ondelete='CASCADE'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    round = db.Column(db.Integer, nullable=False)
    guess = db.Column(db.String(4), nullable=False)
    bulls = db.Column(db.Integer, nullable=False)
    cows = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    game = db.relationship('Game', back_populates='moves')

    __table_args__ = (
        db.UniqueConstraint('game_id', 'player_id', 'round', name='uq_move_game_player_round'),
        db.CheckConstraint('round >= 1', name='ck_move_round_positive'),
        db.CheckConstraint('bulls >= 0 AND cows >= 0 AND bulls + cows <= 4', name='ck_move_score_range'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'player_id': self.player_id,
            'round': self.round,
            'guess': self.guess,
            'bulls': self.bulls,
            'cows': self.cows,
            'created_at': _iso(self.created_at),
        }
