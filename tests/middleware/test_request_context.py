"""Request id propagation.

Every response carries X-Request-ID, and every log line written while
the request runs carries the same id, including the service's own lines.
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from tests.conftest import SeededCourse, auth


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    req_id = client.get("/health").headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "trace-enroll-42"})
    assert resp.headers.get("x-request-id") == "trace-enroll-42"


@pytest.mark.parametrize(
    ("method", "path", "expected"),
    [("GET", "/v1/enrollments", 401), ("GET", "/no/such/route", 404)],
)
def test_request_id_present_on_error_responses(
    client: TestClient, method: str, path: str, expected: int
) -> None:
    resp = client.request(method, path)
    assert resp.status_code == expected
    assert resp.headers.get("x-request-id") is not None


def test_service_logs_carry_request_id(
    client: TestClient,
    student_token: str,
    seeded: SeededCourse,
    caplog: pytest.LogCaptureFixture,
) -> None:
    headers = {**auth(student_token), "X-Request-ID": "trace-enroll-7"}
    with caplog.at_level(logging.INFO):
        client.post(f"/v1/courses/{seeded.course.id}/enroll", headers=headers)

    service_lines = [
        r for r in caplog.records if r.name == "academy.services.enrollment_service"
    ]
    assert service_lines
    assert {getattr(r, "request_id", None) for r in service_lines} == {"trace-enroll-7"}


def test_access_log_line(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="academy.middleware.request_context"):
        client.get("/ready")

    access = [r for r in caplog.records if r.name == "academy.middleware.request_context"]
    assert access[-1].getMessage().startswith("GET /ready -> 200")
    assert access[-1].status_code == 200  # type: ignore[attr-defined]
