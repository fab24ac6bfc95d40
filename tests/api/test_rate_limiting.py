"""Rate limiting on write routes.

Lesson completions spend from the LEDGER_WRITES bucket (capacity 30).
Reads are never throttled.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import SeededCourse, auth, mint_token


@pytest.fixture
def enrolled(client: TestClient, student_token: str, seeded: SeededCourse) -> SeededCourse:
    client.post(f"/v1/courses/{seeded.course.id}/enroll", headers=auth(student_token))
    return seeded


def _complete(client: TestClient, token: str, seeded: SeededCourse):
    # Repeats are idempotent, so the same lesson can be hammered
    return client.post(
        f"/v1/progress/lessons/{seeded.lessons[0].id}/complete", headers=auth(token)
    )


def test_write_route_sets_rate_limit_headers(
    client: TestClient, student_token: str, enrolled: SeededCourse
) -> None:
    resp = _complete(client, student_token, enrolled)
    assert resp.status_code == 200
    assert resp.headers["x-ratelimit-limit"] == "30"
    assert int(resp.headers["x-ratelimit-remaining"]) == 29


def test_over_limit_gets_429_with_retry_after(
    client: TestClient, student_token: str, enrolled: SeededCourse
) -> None:
    before = REGISTRY.get_sample_value("rate_limit_hits_total", {"key_type": "user"}) or 0.0

    statuses = [_complete(client, student_token, enrolled).status_code for _ in range(30)]
    assert set(statuses) == {200}

    resp = _complete(client, student_token, enrolled)
    assert resp.status_code == 429
    assert int(resp.headers["retry-after"]) > 0
    assert resp.headers["x-ratelimit-remaining"] == "0"

    after = REGISTRY.get_sample_value("rate_limit_hits_total", {"key_type": "user"}) or 0.0
    assert after - before == 1


def test_buckets_are_per_user(
    client: TestClient, student_token: str, enrolled: SeededCourse
) -> None:
    for _ in range(31):
        _complete(client, student_token, enrolled)

    other = mint_token("student-other", ["student"])
    client.post(f"/v1/courses/{enrolled.course.id}/enroll", headers=auth(other))
    assert _complete(client, other, enrolled).status_code == 200


def test_reads_are_not_limited(
    client: TestClient, student_token: str, enrolled: SeededCourse
) -> None:
    for _ in range(40):
        resp = client.get(
            f"/v1/progress/courses/{enrolled.course.id}", headers=auth(student_token)
        )
        assert resp.status_code == 200
    assert "x-ratelimit-limit" not in resp.headers
