from flask_socketio import join_room, leave_room, emit
from flask_login import current_user
from moo import socketio, db
from flask import current_app, request
from moo.models import Room
from typing import Callable, Dict, Set, Tuple
import threading


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    with _lock:
        keys = _sid_to_rooms.pop(_get_sid(), set())
    for key in keys:
        _release_forwarder(key)


def handle_subscribe_room(data):
    if not current_user.is_authenticated:
        emit('error', {'message': 'Authentication required'})
        return
    room_id = (data or {}).get('room_id')
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    if not db.session.get(Room, room_id):
        emit('error', {'message': 'Room not found'})
        return

    sid = _get_sid()
    key = (request.namespace, room_id)
    with _lock:
        keys_for_sid = _sid_to_rooms.setdefault(sid, set())
        already = key in keys_for_sid
        keys_for_sid.add(key)
    join_room(_channel(room_id))
    if not already:
        _acquire_forwarder(key)
    emit('subscribed', {'room_id': room_id})


def handle_unsubscribe_room(data):
    room_id = (data or {}).get('room_id')
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    sid = _get_sid()
    key = (request.namespace, room_id)
    with _lock:
        keys_for_sid = _sid_to_rooms.get(sid, set())
        was_subscribed = key in keys_for_sid
        keys_for_sid.discard(key)
    leave_room(_channel(room_id))
    if was_subscribed:
        _release_forwarder(key)
    emit('unsubscribed', {'room_id': room_id})


def handle_ping(data):
    emit('pong', data or {})

# ---- Notifier forwarding ----
# One notifier subscription per (namespace, room), shared by every socket
# watching that room on that namespace

WatchKey = Tuple[str, str]

_lock = threading.Lock()
_sid_to_rooms: Dict[str, Set[WatchKey]] = {}
_room_watchers: Dict[WatchKey, int] = {}
_room_unsubscribe: Dict[WatchKey, Callable[[], None]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _channel(room_id: str) -> str:
    return f"room:{room_id}"


def _acquire_forwarder(key: WatchKey) -> None:
    namespace, room_id = key
    with _lock:
        _room_watchers[key] = _room_watchers.get(key, 0) + 1
        if key in _room_unsubscribe:
            return

        def forward(event):
            socketio.emit('game_update', event.to_dict(), to=_channel(room_id), namespace=namespace)

        notifier = current_app.extensions['game_events']
        _room_unsubscribe[key] = notifier.subscribe(room_id, forward)


def _release_forwarder(key: WatchKey) -> None:
    with _lock:
        remaining = max(0, _room_watchers.get(key, 0) - 1)
        if remaining:
            _room_watchers[key] = remaining
            return
        _room_watchers.pop(key, None)
        unsubscribe = _room_unsubscribe.pop(key, None)
    if unsubscribe:
        unsubscribe()


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('subscribe_room', handle_subscribe_room, namespace=namespace)
        socketio.on_event('unsubscribe_room', handle_unsubscribe_room, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
