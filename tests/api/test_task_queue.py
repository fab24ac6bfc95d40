"""Notifications queued by the certificate workflow.

The API only enqueues; delivery is the worker's job, so these tests read
the in-memory queue directly.
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from academy.services.task_queue import NOTIFICATIONS_QUEUE, task_queue
from tests.conftest import STUDENT_ID, SeededCourse, auth


def _drain() -> list[dict]:
    payloads = []
    while (task := asyncio.run(task_queue.dequeue(NOTIFICATIONS_QUEUE))) is not None:
        payloads.append(task.payload)
    return payloads


def _finish(client: TestClient, token: str, seeded: SeededCourse) -> None:
    client.post(f"/v1/courses/{seeded.course.id}/enroll", headers=auth(token))
    for lesson in seeded.lessons:
        client.post(f"/v1/progress/lessons/{lesson.id}/complete", headers=auth(token))


def test_enrollment_alone_queues_nothing(
    client: TestClient, student_token: str, seeded: SeededCourse
) -> None:
    client.post(f"/v1/courses/{seeded.course.id}/enroll", headers=auth(student_token))
    assert _drain() == []


def test_certificate_workflow_events_in_order(
    client: TestClient, student_token: str, instructor_token: str, seeded: SeededCourse
) -> None:
    _finish(client, student_token, seeded)
    client.post(
        "/v1/certificates/requests",
        json={"course_id": str(seeded.course.id)},
        headers=auth(student_token),
    )
    client.post(
        "/v1/certificates/issue",
        json={"student_id": STUDENT_ID, "course_id": str(seeded.course.id)},
        headers=auth(instructor_token),
    )

    events = _drain()
    assert [e["type"] for e in events] == [
        "course_completed",
        "certificate_requested",
        "certificate_issued",
    ]
    assert {e["student_id"] for e in events} == {STUDENT_ID}
    assert {e["course_id"] for e in events} == {str(seeded.course.id)}


def test_rejection_is_queued(
    client: TestClient, student_token: str, instructor_token: str, seeded: SeededCourse
) -> None:
    _finish(client, student_token, seeded)
    client.post(
        "/v1/certificates/requests",
        json={"course_id": str(seeded.course.id)},
        headers=auth(student_token),
    )
    _drain()

    client.post(
        "/v1/certificates/reject",
        json={"student_id": STUDENT_ID, "course_id": str(seeded.course.id)},
        headers=auth(instructor_token),
    )
    assert [e["type"] for e in _drain()] == ["certificate_rejected"]
