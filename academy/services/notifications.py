"""Outbound domain events.

Delivery (email, in-app inbox) belongs to another service.  The core
only drops an event on the ``notifications`` queue and moves on; a
broken queue must never fail the write that produced the event.
Events leave only once that write has committed (see OutboxPublisher).
"""

from __future__ import annotations

import logging
from typing import Protocol

from academy.models.events import DomainEvent
from academy.services.task_queue import NOTIFICATIONS_QUEUE, TaskQueue

logger = logging.getLogger(__name__)


class NotificationPublisher(Protocol):
    async def publish(self, event: DomainEvent) -> None: ...


class QueueNotificationPublisher:
    def __init__(self, queue: TaskQueue) -> None:
        self._queue = queue

    async def publish(self, event: DomainEvent) -> None:
        try:
            task = await self._queue.enqueue(NOTIFICATIONS_QUEUE, event.to_payload())
        except Exception:
            # Fire-and-forget: the outbox only flushes after the write committed
            logger.exception(
                "Dropped %s event for student=%s course=%s",
                event.type.value,
                event.student_id,
                event.course_id,
            )
            return
        logger.info(
            "Queued %s event",
            event.type.value,
            extra={
                "task_id": task.id,
                "student_id": event.student_id,
                "course_id": str(event.course_id),
            },
        )


class OutboxPublisher:
    """Holds the events of one unit of work until its writes are durable.

    Services publish into the outbox as they go.  The registry flushes it
    to the real publisher after the transaction commits and discards it
    on rollback, so a rolled-back transition or certificate never
    announces itself.
    """

    def __init__(self, target: NotificationPublisher) -> None:
        self._target = target
        self._pending: list[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self._pending.append(event)

    async def flush(self) -> None:
        pending, self._pending = self._pending, []
        for event in pending:
            await self._target.publish(event)

    def discard(self) -> None:
        if self._pending:
            logger.info(
                "Discarded %d unsent events after rollback: %s",
                len(self._pending),
                ", ".join(e.type.value for e in self._pending),
            )
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)


class RecordingNotificationPublisher:
    """Keeps events in a list.  Used by tests and by the dev shell."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()
