"""Analytics read-through cache.

1. First GET is a miss and stores the snapshot
2. Second GET is a hit and returns the same snapshot
3. Writes do not invalidate; a refresh (or TTL) does
4. Each scope has its own entry
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from academy.services.registry import open_services
from tests.conftest import SeededCourse, auth, mint_token


async def _refresh() -> None:
    async with open_services() as services:
        await services.analytics.refresh()


def _cache_ops(operation: str) -> float:
    return REGISTRY.get_sample_value("cache_operations_total", {"operation": operation}) or 0.0


def _enroll(client: TestClient, student: str, seeded: SeededCourse) -> None:
    token = mint_token(student, ["student"])
    client.post(f"/v1/courses/{seeded.course.id}/enroll", headers=auth(token))


def test_cache_miss_then_hit(
    client: TestClient, admin_token: str, seeded: SeededCourse
) -> None:
    _enroll(client, "student-a", seeded)
    misses, hits = _cache_ops("miss"), _cache_ops("hit")

    first = client.get("/v1/analytics", headers=auth(admin_token)).json()
    assert _cache_ops("miss") - misses == 1

    second = client.get("/v1/analytics", headers=auth(admin_token)).json()
    assert _cache_ops("hit") - hits == 1
    assert first == second


def test_writes_visible_after_refresh(
    client: TestClient, admin_token: str, seeded: SeededCourse
) -> None:
    _enroll(client, "student-a", seeded)
    assert client.get("/v1/analytics", headers=auth(admin_token)).json()["total_enrollments"] == 1

    _enroll(client, "student-b", seeded)
    stale = client.get("/v1/analytics", headers=auth(admin_token)).json()
    assert stale["total_enrollments"] == 1

    asyncio.run(_refresh())
    fresh = client.get("/v1/analytics", headers=auth(admin_token)).json()
    assert fresh["total_enrollments"] == 2


def test_scopes_are_cached_separately(
    client: TestClient, admin_token: str, seeded: SeededCourse
) -> None:
    _enroll(client, "student-a", seeded)
    everything = client.get("/v1/analytics", headers=auth(admin_token)).json()
    nobody = client.get(
        "/v1/analytics", params={"instructor_id": "instructor-nobody"}, headers=auth(admin_token)
    ).json()

    assert everything["total_enrollments"] == 1
    assert nobody["total_enrollments"] == 0
