# carelink/core/events.py
"""
In-process publish/subscribe.

Domain code publishes plain dataclass events after its transaction has
committed; consumers (the scheduled-consultation notifier, the realtime
change feed, the auth audit log) subscribe at startup and keep the returned
Subscription so they can detach on shutdown.

Handler failures are logged and never propagate back to the publisher.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Callable
from uuid import UUID

from carelink.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class AuthEventKind(str, PyEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    USER_UPDATED = "USER_UPDATED"


class ChangeAction(str, PyEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class AuthStateChanged:
    kind: AuthEventKind
    user_id: UUID
    occurred_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class RolesChanged:
    user_id: UUID
    role: str
    granted: bool
    changed_by_id: UUID | None = None
    occurred_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ConsultationChanged:
    action: ChangeAction
    consultation_id: UUID
    patient_id: UUID
    occurred_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ConsultationScheduled:
    consultation_id: UUID
    patient_id: UUID
    scheduled_date: datetime
    meeting_link: str
    specialist_name: str | None = None
    specialty: str | None = None
    triggered_by_id: UUID | None = None
    occurred_at: datetime = field(default_factory=utc_now)


class Subscription:
    """
    Handle returned by EventBus.subscribe(). Calling unsubscribe() twice is harmless.
    """

    def __init__(self, bus: "EventBus", event_type: type, handler: Handler):
        self._bus = bus
        self.event_type = event_type
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._bus._remove(self)
            self.active = False


class EventBus:
    def __init__(self) -> None:
        self._subscriptions: dict[type, list[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_type: type, handler: Handler) -> Subscription:
        subscription = Subscription(self, event_type, handler)
        with self._lock:
            self._subscriptions[event_type].append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(subscription.event_type, [])
            if subscription in subs:
                subs.remove(subscription)

    def subscriber_count(self, event_type: type) -> int:
        with self._lock:
            return len(self._subscriptions.get(event_type, []))

    def publish(self, event: Any) -> None:
        with self._lock:
            subscribers = list(self._subscriptions.get(type(event), []))

        for subscription in subscribers:
            try:
                subscription.handler(event)
            except Exception:
                logger.exception(
                    "Non-fatal: event handler %r failed for %s",
                    subscription.handler,
                    type(event).__name__,
                )


# Process-wide bus; tests may build their own EventBus instances.
event_bus = EventBus()
