from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import auth

# ---- 404: undefined routes ----


def test_undefined_route_returns_404(client: TestClient) -> None:
    resp = client.get("/nonexistent")
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Not Found"}


def test_undefined_nested_route_returns_404(client: TestClient) -> None:
    resp = client.get("/v2/courses")
    assert resp.status_code == 404


# ---- 405: wrong HTTP method on existing routes ----


def test_delete_courses_returns_405(client: TestClient, student_token: str) -> None:
    resp = client.delete("/v1/courses", headers=auth(student_token))
    assert resp.status_code == 405


def test_put_health_returns_405(client: TestClient) -> None:
    resp = client.put("/health", json={"status": "bad"})
    assert resp.status_code == 405


def test_get_issue_returns_405(client: TestClient) -> None:
    resp = client.get("/v1/certificates/issue")
    assert resp.status_code == 405


# ---- 422: malformed path parameters ----


def test_non_uuid_course_id_returns_422(client: TestClient, student_token: str) -> None:
    resp = client.post("/v1/courses/not-a-uuid/enroll", headers=auth(student_token))
    assert resp.status_code == 422
