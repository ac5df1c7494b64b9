import threading
from datetime import timedelta
from typing import Optional

from flask import current_app

from moo import db, socketio
from moo.models import Room, Game, utcnow


def cleanup_empty_rooms(now=None, grace_sec: Optional[int] = None) -> int:
    """Delete rooms that have been empty longer than the grace period.

    A room is a candidate when it is ``waiting`` and its ``empty_at`` is
    older than ``grace_sec``. Candidates with a game still being played are
    skipped. Returns the number of rooms deleted.
    """
    now = now or utcnow()
    if grace_sec is None:
        grace_sec = int(current_app.config.get('ROOM_EMPTY_GRACE_SEC', 300))
    cutoff = now - timedelta(seconds=grace_sec)

    candidates = Room.query.filter(Room.status == 'waiting', Room.empty_at < cutoff).all()
    if not candidates:
        return 0

    current_app.logger.info(f"[cleanup] found {len(candidates)} empty rooms")
    deleted = 0
    for room in candidates:
        active = Game.query.filter_by(room_id=room.id, status='playing').first()
        if active:
            current_app.logger.info(f"[cleanup-skip] room={room.code} has active game={active.id}")
            continue
        code = room.code
        db.session.delete(room)
        db.session.commit()
        current_app.logger.info(f"[cleanup] removed room={code}")
        deleted += 1
    return deleted


class RoomCleanupService:
    """Runs ``cleanup_empty_rooms`` once at start and then on a fixed interval.

    ``start`` is idempotent: a second call while running does nothing.
    """

    def __init__(self, interval_sec: int = 120, grace_sec: int = 300):
        self.interval_sec = interval_sec
        self.grace_sec = grace_sec
        self._lock = threading.Lock()
        self._stop_event: Optional[threading.Event] = None

    @classmethod
    def from_config(cls, config) -> 'RoomCleanupService':
        return cls(
            interval_sec=int(config.get('ROOM_CLEANUP_INTERVAL_SEC', 120)),
            grace_sec=int(config.get('ROOM_EMPTY_GRACE_SEC', 300)),
        )

    @property
    def running(self) -> bool:
        with self._lock:
            return self._stop_event is not None

    def start(self, app) -> bool:
        with self._lock:
            if self._stop_event is not None:
                app.logger.info("[cleanup] service already running")
                return False
            stop_event = threading.Event()
            self._stop_event = stop_event
        app.logger.info(f"[cleanup] starting, sweeping every {self.interval_sec}s")
        socketio.start_background_task(self._worker, app, stop_event)
        return True

    def stop(self) -> bool:
        with self._lock:
            stop_event, self._stop_event = self._stop_event, None
        if stop_event is None:
            return False
        stop_event.set()
        return True

    def sweep(self, app) -> int:
        with app.app_context():
            try:
                cleaned = cleanup_empty_rooms(grace_sec=self.grace_sec)
            except Exception:
                db.session.rollback()
                app.logger.exception("[cleanup] sweep failed")
                return 0
            finally:
                db.session.remove()
            if cleaned:
                app.logger.info(f"[cleanup] cleaned up {cleaned} empty rooms")
            return cleaned

    def _worker(self, app, stop_event: threading.Event) -> None:
        self.sweep(app)
        while not stop_event.wait(self.interval_sec):
            self.sweep(app)
        app.logger.info("[cleanup] stopped")
