"""In-process publish/subscribe for room and game updates.

Events are fire-and-forget: nothing is stored, so a client that was not
subscribed when an event fired has to re-fetch state to catch up.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EVENT_TYPES = ('room_updated', 'game_started', 'move_made', 'game_finished')


@dataclass
class GameUpdateEvent:
    room_id: str
    type: str
    game_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.type not in EVENT_TYPES:
            raise ValueError(f'unknown event type: {self.type}')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'room_id': self.room_id,
            'game_id': self.game_id,
            'type': self.type,
            'data': dict(self.data),
        }


class GameEventNotifier:
    """Fans events out to every listener, filtered per room."""

    def __init__(self):
        self._listeners: List[Callable[[GameUpdateEvent], None]] = []
        self._lock = threading.Lock()

    def emit(self, event: GameUpdateEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception('[events] listener failed for %s in room %s', event.type, event.room_id)

    def publish(self, room_id: str, event_type: str, game_id: Optional[str] = None, **data) -> GameUpdateEvent:
        event = GameUpdateEvent(room_id=room_id, type=event_type, game_id=game_id, data=data)
        self.emit(event)
        return event

    def subscribe(self, room_id: str, on_event: Callable[[GameUpdateEvent], None]) -> Callable[[], None]:
        """Deliver events for ``room_id`` to ``on_event`` until the returned callable is invoked."""
        def listener(event: GameUpdateEvent) -> None:
            if event.room_id == room_id:
                on_event(event)

        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)
