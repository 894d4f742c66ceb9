# carelink/services/change_feed.py
"""
Realtime consultation change feed.

Each open websocket owns one FeedListener. Admin listeners see every
consultation; patient listeners only their own. Messages are refetch hints,
not row payloads.

Events arrive on whatever thread published them (usually a background-task
worker), so delivery goes through loop.call_soon_threadsafe onto the
listener's event loop.
"""

import asyncio
import logging
import threading
from typing import Any
from uuid import UUID

from carelink.core.events import (
    AuthEventKind,
    AuthStateChanged,
    ConsultationChanged,
    EventBus,
    RolesChanged,
    Subscription,
)

logger = logging.getLogger(__name__)


class FeedListener:
    def __init__(
        self,
        feed: "ConsultationChangeFeed",
        *,
        user_id: UUID,
        patient_id: UUID | None,
        loop: asyncio.AbstractEventLoop,
    ):
        self._feed = feed
        self.user_id = user_id
        # None means "all consultations"
        self.patient_id = patient_id
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.close_reason: str | None = None

    @property
    def scope(self) -> str:
        return "all" if self.patient_id is None else "own"

    def matches(self, event: ConsultationChanged) -> bool:
        return self.patient_id is None or event.patient_id == self.patient_id

    def push(self, message: dict[str, Any] | None) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, message)
        except RuntimeError:
            # loop already closed: the socket is gone
            logger.debug("Dropping feed listener for user=%s (event loop closed)", self.user_id)
            self.close()

    async def get(self) -> dict[str, Any] | None:
        """
        Next message, or None once the listener has been closed.
        """
        return await self._queue.get()

    def close(self, reason: str | None = None) -> None:
        if self.closed:
            return
        self.closed = True
        self.close_reason = reason
        self._feed._discard(self)
        if reason is not None:
            self.push(None)


class ConsultationChangeFeed:
    def __init__(self) -> None:
        self._listeners: set[FeedListener] = set()
        self._lock = threading.Lock()

    def listen(
        self,
        *,
        user_id: UUID,
        patient_id: UUID | None,
        loop: asyncio.AbstractEventLoop,
    ) -> FeedListener:
        listener = FeedListener(self, user_id=user_id, patient_id=patient_id, loop=loop)
        with self._lock:
            self._listeners.add(listener)
        return listener

    def _discard(self, listener: FeedListener) -> None:
        with self._lock:
            self._listeners.discard(listener)

    def _snapshot(self) -> list[FeedListener]:
        with self._lock:
            return list(self._listeners)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def on_consultation_changed(self, event: ConsultationChanged) -> None:
        message = {
            "type": "consultations_changed",
            "action": event.action.value,
            "consultation_id": str(event.consultation_id),
        }
        for listener in self._snapshot():
            if listener.matches(event):
                listener.push(message)

    def close_for_user(self, user_id: UUID, reason: str) -> int:
        """
        Close every listener of one user; clients reconnect and get re-scoped.
        """
        closed = 0
        for listener in self._snapshot():
            if listener.user_id == user_id:
                listener.close(reason)
                closed += 1
        return closed

    def on_roles_changed(self, event: RolesChanged) -> None:
        self.close_for_user(event.user_id, "roles_changed")

    def on_auth_state_changed(self, event: AuthStateChanged) -> None:
        if event.kind == AuthEventKind.SIGNED_OUT:
            self.close_for_user(event.user_id, "signed_out")

    def close_all(self) -> None:
        for listener in self._snapshot():
            listener.close("shutdown")

    def attach(self, bus: EventBus) -> list[Subscription]:
        return [
            bus.subscribe(ConsultationChanged, self.on_consultation_changed),
            bus.subscribe(RolesChanged, self.on_roles_changed),
            bus.subscribe(AuthStateChanged, self.on_auth_state_changed),
        ]


change_feed = ConsultationChangeFeed()
