"""Game state machine: code_selection -> playing -> finished.

Every operation takes a ``GameLookup`` so the same logic serves requests
addressed by game id and by room code. Transitions are written as
conditional updates, so two concurrent requests cannot both apply the same
transition. Guesses also take a row lock on the game, so a round always
advances once both of its moves are in.
"""

from typing import Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from moo import db
from moo.models import Game, Move, Room
from .codec import is_valid_code
from .errors import BadRequestError, ForbiddenError, NotFoundError
from .events import GameEventNotifier
from .rooms import find_room, mark_room_as_empty
from .scoring import score_guess, is_winning_guess


class GameLookup:
    """Identifies the game a request is about, by id or by its room's code."""

    def __init__(self, game_id: Optional[str] = None, room_code: Optional[str] = None):
        if (game_id is None) == (room_code is None):
            raise ValueError('exactly one of game_id or room_code is required')
        self.game_id = game_id
        self.room_code = room_code

    @classmethod
    def by_id(cls, game_id: str) -> 'GameLookup':
        return cls(game_id=game_id)

    @classmethod
    def by_room_code(cls, room_code: str) -> 'GameLookup':
        return cls(room_code=room_code)

    def resolve(self) -> Game:
        if self.room_code is not None:
            room = find_room(self.room_code)
            game = Game.query.filter_by(room_id=room.id).first()
            if not game:
                raise NotFoundError('No game found in this room')
            return game
        game = db.session.get(Game, self.game_id)
        if not game:
            raise NotFoundError('Game not found')
        return game

    def __repr__(self):
        if self.room_code is not None:
            return f'GameLookup(room_code={self.room_code!r})'
        return f'GameLookup(game_id={self.game_id!r})'


def _require_player(game: Game, user_id: int) -> None:
    if not game.is_player(user_id):
        raise ForbiddenError('You are not a player in this game')


def get_game_state(user_id: int, lookup: GameLookup) -> dict:
    game = lookup.resolve()
    _require_player(game, user_id)
    moves = Move.query.filter_by(game_id=game.id).order_by(Move.round.asc(), Move.created_at.asc()).all()
    return {
        'game': game.to_dict(viewer_id=user_id),
        'moves': [m.to_dict() for m in moves],
        'is_player1': game.player1_id == user_id,
        'is_player2': game.player2_id == user_id,
    }


def get_my_games(user_id: int) -> list:
    games = Game.query.filter(
        or_(Game.player1_id == user_id, Game.player2_id == user_id)
    ).order_by(Game.updated_at.desc()).all()
    return [g.to_dict(viewer_id=user_id) for g in games]


def set_player_code(user_id: int, lookup: GameLookup, code: str, notifier: GameEventNotifier) -> dict:
    if not is_valid_code(code):
        raise BadRequestError('Invalid code format')

    game = lookup.resolve()
    if game.status != 'code_selection':
        raise BadRequestError('Game is not in code selection phase')

    if game.player1_id == user_id:
        column = Game.player1_code
    elif game.player2_id == user_id:
        column = Game.player2_code
    else:
        raise ForbiddenError('You are not a player in this game')

    game_id, room_id = game.id, game.room_id
    updated = Game.query.filter(
        Game.id == game_id,
        Game.status == 'code_selection',
        column.is_(None),
    ).update({column.key: code}, synchronize_session=False)
    if not updated:
        db.session.rollback()
        raise BadRequestError('You have already chosen your code')
    db.session.commit()
    current_app.logger.info(f"[code-set] game={game_id} player={user_id}")

    # Whoever completes the pair flips the game to playing
    started = Game.query.filter(
        Game.id == game_id,
        Game.status == 'code_selection',
        Game.player1_code.isnot(None),
        Game.player2_code.isnot(None),
    ).update({'status': 'playing'}, synchronize_session=False)
    db.session.commit()

    if started:
        current_app.logger.info(f"[game-start] game={game_id} both codes set")
        notifier.publish(room_id, 'game_started', game_id=game_id, status='playing')

    return {'success': True}


def make_guess(user_id: int, lookup: GameLookup, guess: str, notifier: GameEventNotifier) -> dict:
    if not is_valid_code(guess):
        raise BadRequestError('Invalid guess format')

    # Row lock serializes guesses per game, so the second mover of a round
    # always sees the first move when counting
    game = Game.query.filter_by(id=lookup.resolve().id).with_for_update().populate_existing().one()
    if game.status != 'playing':
        raise BadRequestError('Game is not in playing state')

    if not game.player1_code or not game.player2_code:
        raise BadRequestError('Players have not set their codes yet')

    if game.player1_id == user_id:
        target_code = game.player2_code
    elif game.player2_id == user_id:
        target_code = game.player1_code
    else:
        raise ForbiddenError('You are not a player in this game')

    game_id, room_id, round_no = game.id, game.room_id, game.current_round

    if Move.query.filter_by(game_id=game_id, player_id=user_id, round=round_no).first():
        raise BadRequestError('You have already made a guess this round')

    bulls, cows = score_guess(guess, target_code)
    won = is_winning_guess(bulls)

    db.session.add(Move(game_id=game_id, player_id=user_id, round=round_no,
                        guess=guess, bulls=bulls, cows=cows))
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise BadRequestError('You have already made a guess this round')

    if won:
        finished = Game.query.filter(
            Game.id == game_id,
            Game.status == 'playing',
        ).update({'status': 'finished', 'winner_id': user_id}, synchronize_session=False)
        if not finished:
            # The opponent won first; this move never counts
            db.session.rollback()
            raise BadRequestError('Game is not in playing state')
        room = db.session.get(Room, room_id)
        room.status = 'finished'
        db.session.commit()
        mark_room_as_empty(room)
        db.session.commit()

        current_app.logger.info(f"[game-finished] game={game_id} winner={user_id} round={round_no}")
        notifier.publish(room_id, 'game_finished', game_id=game_id,
                         winner_id=user_id, bulls=bulls, cows=cows)
    else:
        round_moves = Move.query.filter_by(game_id=game_id, round=round_no).count()
        if round_moves >= 2:
            advanced = Game.query.filter(
                Game.id == game_id,
                Game.current_round == round_no,
            ).update({'current_round': round_no + 1}, synchronize_session=False)
            if advanced:
                current_app.logger.info(f"[round-advance] game={game_id} round {round_no} -> {round_no + 1}")
        db.session.commit()

        current_app.logger.info(f"[guess] game={game_id} player={user_id} round={round_no} bulls={bulls} cows={cows}")
        notifier.publish(room_id, 'move_made', game_id=game_id,
                         player_id=user_id, round=round_no, bulls=bulls, cows=cows)

    return {'bulls': bulls, 'cows': cows, 'is_win': won}
