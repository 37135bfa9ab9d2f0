"""
In-process event hub.

Publish/subscribe fan-out for purchase and access events. Delivery is
at-most-once and nothing is persisted: a listener that is not subscribed when
an event is emitted never sees it. The hub is created by the application and
handed to whoever publishes; there is no module-level instance.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Literal

from fanledger.core.config import settings
from fanledger.data.packs import GrantType
from fanledger.db.models.base import new_id
from fanledger.utils.dates import utcnow

log = logging.getLogger(__name__)

EventType = Literal["PURCHASE_CREATED", "PPV_UNLOCKED", "ACCESS_UPDATED"]

PURCHASE_CREATED: EventType = "PURCHASE_CREATED"
PPV_UNLOCKED: EventType = "PPV_UNLOCKED"
ACCESS_UPDATED: EventType = "ACCESS_UPDATED"


@dataclass(frozen=True)
class RealtimeEvent:
    type: EventType
    creator_id: str
    fan_id: str | None
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=lambda: utcnow().isoformat())

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "eventId": data["event_id"],
            "type": data["type"],
            "creatorId": data["creator_id"],
            "fanId": data["fan_id"],
            "payload": data["payload"],
            "createdAt": data["created_at"],
        }


Listener = Callable[[RealtimeEvent], Any]


class EventHub:
    def __init__(self, max_listeners: int | None = None):
        self.max_listeners = max_listeners or settings.EVENT_HUB_MAX_LISTENERS
        self._listeners: dict[int, tuple[Listener, str | None]] = {}
        self._next_token = 0

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener, creator_id: str | None = None) -> Callable[[], None]:
        """Register ``listener``; returns the function that removes it."""
        if len(self._listeners) >= self.max_listeners:
            raise RuntimeError(f"event hub is full ({self.max_listeners} listeners)")

        token = self._next_token
        self._next_token += 1
        self._listeners[token] = (listener, creator_id)

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def emit(self, event: RealtimeEvent) -> int:
        """Deliver to every matching listener. Returns how many received it."""
        delivered = 0
        for listener, creator_id in list(self._listeners.values()):
            if creator_id is not None and creator_id != event.creator_id:
                continue
            try:
                listener(event)
                delivered += 1
            except Exception:
                log.warning("event_hub.listener_failed type=%s event=%s", event.type, event.event_id, exc_info=True)
        return delivered


def access_updated(creator_id: str, fan_id: str, grant_type: GrantType | str, expires_at: str) -> RealtimeEvent:
    return RealtimeEvent(
        type=ACCESS_UPDATED,
        creator_id=creator_id,
        fan_id=fan_id,
        payload={"grantType": grant_type, "expiresAt": expires_at},
    )
