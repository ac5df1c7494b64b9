import random
import string
from datetime import timedelta

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from moo import db
from moo.models import Room, Game, utcnow
from .errors import BadRequestError, NotFoundError, ServerError
from .events import GameEventNotifier

ROOM_CODE_CHARS = string.ascii_uppercase
ROOM_CODE_LENGTH = 4


def generate_room_code() -> str:
    return ''.join(random.choices(ROOM_CODE_CHARS, k=ROOM_CODE_LENGTH))


def find_room(code) -> Room:
    room = Room.query.filter_by(code=(code or '').upper()).first()
    if not room:
        raise NotFoundError('Room not found')
    return room


def mark_room_as_active(room: Room) -> None:
    """Push empty_at into the future so the cleanup sweep leaves the room alone."""
    hold = int(current_app.config.get('ROOM_ACTIVE_HOLD_SEC', 24 * 60 * 60))
    room.empty_at = utcnow() + timedelta(seconds=hold)
    db.session.add(room)
    current_app.logger.info(f"[room-active] room={room.id} code={room.code}")


def mark_room_as_empty(room: Room) -> None:
    """Start the room's empty clock; it is reaped once the grace period passes."""
    room.empty_at = utcnow()
    room.status = 'waiting'
    db.session.add(room)
    current_app.logger.info(f"[room-empty] room={room.id} code={room.code}")


def create_room(creator_id: int, notifier: GameEventNotifier) -> dict:
    attempts = int(current_app.config.get('ROOM_CODE_ATTEMPTS', 10))
    hold = int(current_app.config.get('ROOM_ACTIVE_HOLD_SEC', 24 * 60 * 60))
    room = None
    for attempt in range(attempts):
        code = generate_room_code()
        if Room.query.filter_by(code=code).first():
            continue
        candidate = Room(
            code=code,
            created_by=creator_id,
            status='waiting',
            empty_at=utcnow() + timedelta(seconds=hold),
        )
        db.session.add(candidate)
        try:
            db.session.commit()
        except IntegrityError:
            # Another request claimed the code between the check and the insert
            db.session.rollback()
            current_app.logger.info(f"[room-create] code={code} taken concurrently, attempt={attempt + 1}")
            continue
        room = candidate
        break

    if room is None:
        current_app.logger.error(f"[room-create] no unique code after {attempts} attempts")
        raise ServerError('Failed to generate unique room code')

    current_app.logger.info(f"[room-create] room={room.id} code={room.code} creator={creator_id}")
    notifier.publish(room.id, 'room_updated', status=room.status, code=room.code)
    return {'room_id': room.id, 'code': room.code}


def get_room_info(code) -> Room:
    return find_room(code)


def get_user_room_role(user_id: int, code) -> dict:
    room = find_room(code)

    if room.created_by == user_id:
        game = Game.query.filter_by(room_id=room.id).first()
        return {
            'role': 'creator',
            'room_id': room.id,
            'game_id': game.id if game else None,
            'game_status': game.status if game else None,
        }

    game = Game.query.filter(
        Game.room_id == room.id,
        or_(Game.player1_id == user_id, Game.player2_id == user_id),
    ).first()
    if game:
        return {
            'role': 'player',
            'room_id': room.id,
            'game_id': game.id,
            'game_status': game.status,
        }

    return {'role': 'visitor', 'room_id': room.id, 'game_id': None, 'game_status': None}


def join_room(user_id: int, code, notifier: GameEventNotifier) -> dict:
    room = find_room(code)

    # The creator coming back to their own room
    if room.created_by == user_id:
        mark_room_as_active(room)
        db.session.commit()
        existing = Game.query.filter_by(room_id=room.id).first()
        return {'game_id': existing.id if existing else None, 'room_id': room.id, 'is_creator': True}

    if room.status != 'waiting':
        raise BadRequestError('Room is not accepting new players')

    if Game.query.filter_by(room_id=room.id).first():
        raise BadRequestError('Room already has a game in progress')

    game = Game(
        room_id=room.id,
        player1_id=room.created_by,
        player2_id=user_id,
        status='code_selection',
        current_round=1,
    )
    db.session.add(game)
    room.status = 'playing'
    mark_room_as_active(room)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost the race for the room's single game slot
        db.session.rollback()
        raise BadRequestError('Room already has a game in progress')

    current_app.logger.info(f"[join] room={room.id} game={game.id} player1={game.player1_id} player2={user_id}")
    notifier.publish(room.id, 'game_started', game_id=game.id,
                     player1_id=game.player1_id, player2_id=game.player2_id)
    return {'game_id': game.id, 'room_id': room.id, 'is_creator': False}
