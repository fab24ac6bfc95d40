"""Background worker process.

RUN:  python -m academy.worker

Same image as the API, different command:
  api:    uvicorn academy.main:app --host 0.0.0.0 --port 8000
  worker: python -m academy.worker

Queues
-------
  notifications      domain events from the API (course completed,
                     certificate requested/issued/rejected).  Delivery
                     belongs to the notification service; here each event
                     is logged as handed off.
  analytics_refresh  drop cached analytics snapshots and rebuild the
                     global one.  The worker also enqueues this itself
                     every ANALYTICS_REFRESH_INTERVAL seconds.

Tasks are processed one at a time.  A failing handler is logged and the
loop moves on; there is no retry or dead-letter queue.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from academy.core.config import SETTINGS
from academy.core.logging import setup_logging
from academy.services.registry import open_services
from academy.services.task_queue import (
    ANALYTICS_REFRESH_QUEUE,
    NOTIFICATIONS_QUEUE,
    task_queue,
)

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("academy.worker")

# Pause between polling rounds when every queue came back empty
_IDLE_SLEEP_SECONDS = 0.5

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


# ---------------------------------------------------------------------------
# Task handlers
# ---------------------------------------------------------------------------


@register_handler(NOTIFICATIONS_QUEUE)
async def handle_notification(payload: dict) -> None:
    event_type = payload.get("type")
    if event_type is None:
        raise ValueError(f"notification payload without a type: {payload!r}")
    logger.info(
        "Delivering %s notification event=%s",
        event_type,
        payload.get("id"),
        extra={
            "student_id": payload.get("student_id"),
            "course_id": payload.get("course_id"),
        },
    )


@register_handler(ANALYTICS_REFRESH_QUEUE)
async def handle_analytics_refresh(payload: dict) -> None:
    async with open_services() as services:
        snapshot = await services.analytics.refresh()
    logger.info(
        "Analytics refreshed enrollments=%d completions=%d certificates=%d",
        snapshot.total_enrollments,
        snapshot.total_completions,
        snapshot.total_certificates,
    )


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------


async def process_one(queue_name: str, timeout: int = 1) -> bool:
    """Run at most one task from ``queue_name``.  False when the queue was empty."""
    task = await task_queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return False

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return True


async def schedule_analytics_refresh(interval: int) -> None:
    while True:
        task = await task_queue.enqueue(ANALYTICS_REFRESH_QUEUE, {"reason": "scheduled"})
        logger.debug("Scheduled analytics refresh task=%s", task.id)
        await asyncio.sleep(interval)


async def poll_queues() -> None:
    queues = list(HANDLERS)
    logger.info("Worker started, listening on queues: %s", queues)
    while True:
        busy = False
        for queue_name in queues:
            busy = await process_one(queue_name) or busy
        if not busy:
            await asyncio.sleep(_IDLE_SLEEP_SECONDS)


async def run_worker() -> None:
    await asyncio.gather(
        poll_queues(),
        schedule_analytics_refresh(SETTINGS.analytics_refresh_interval),
    )


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
