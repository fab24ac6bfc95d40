"""Table-driven RBAC tests.

Each row describes: endpoint, method, role, expected HTTP status.
Paths carry ``{course}`` / ``{quiz}`` / ``{assignment}`` placeholders
filled from the seeded course.  Rows only check the role guards, so a
body that passes the guard may still end in a domain 4xx; those rows
name that status.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.conftest import STUDENT_ID, SeededCourse, mint_token


def _auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


_RBAC_CASES = [
    # (endpoint, method, role, expected_status)
    # catalog: any authenticated user
    ("/v1/courses", "GET", "student", 200),
    ("/v1/courses", "GET", "instructor", 200),
    ("/v1/courses", "GET", None, 401),
    # enroll: students only
    ("/v1/courses/{course}/enroll", "POST", "student", 201),
    ("/v1/courses/{course}/enroll", "POST", "instructor", 403),
    ("/v1/courses/{course}/enroll", "POST", "admin", 403),
    ("/v1/courses/{course}/enroll", "POST", None, 401),
    # roster: staff only
    ("/v1/courses/{course}/enrollments", "GET", "instructor", 200),
    ("/v1/courses/{course}/enrollments", "GET", "admin", 200),
    ("/v1/courses/{course}/enrollments", "GET", "student", 403),
    # quiz attempts: students only (not enrolled, so 404 past the guard)
    ("/v1/quizzes/{quiz}/attempts", "POST", "student", 404),
    ("/v1/quizzes/{quiz}/attempts", "POST", "instructor", 403),
    # grading queue: staff only
    ("/v1/submissions/pending", "GET", "instructor", 200),
    ("/v1/submissions/pending", "GET", "student", 403),
    ("/v1/submissions/pending", "GET", None, 401),
    # certificate review queue: staff only
    ("/v1/certificates/requests", "GET", "admin", 200),
    ("/v1/certificates/requests", "GET", "student", 403),
    # own certificates: any authenticated user
    ("/v1/certificates/mine", "GET", "student", 200),
    ("/v1/certificates/mine", "GET", None, 401),
    # analytics: staff only
    ("/v1/analytics", "GET", "instructor", 200),
    ("/v1/analytics", "GET", "admin", 200),
    ("/v1/analytics", "GET", "student", 403),
    ("/v1/analytics", "GET", None, 401),
]

_BODIES = {
    "/v1/quizzes/{quiz}/attempts": {"score": 80},
}


def _case_id(case: tuple) -> str:
    endpoint, method, role, expected = case
    role_label = role or "anon"
    return f"{method} {endpoint} [{role_label}] -> {expected}"


@pytest.mark.parametrize(
    "endpoint,method,role,expected",
    _RBAC_CASES,
    ids=[_case_id(c) for c in _RBAC_CASES],
)
def test_rbac(
    client: TestClient,
    seeded: SeededCourse,
    endpoint: str,
    method: str,
    role: str | None,
    expected: int,
) -> None:
    # Instructor rows use the seeded course's owner so ownership checks pass
    subject = {"student": STUDENT_ID, "instructor": seeded.course.instructor_id}.get(
        role or "", "admin-root"
    )
    token = mint_token(username=subject, roles=[role]) if role else None
    path = endpoint.format(
        course=seeded.course.id, quiz=seeded.quiz.id, assignment=seeded.assignment.id
    )
    body = _BODIES.get(endpoint)

    resp = client.request(method, path, headers=_auth(token), json=body)

    assert resp.status_code == expected, resp.text


def test_token_without_roles_claim_defaults_to_student(client: TestClient) -> None:
    """Tokens minted without roles carry the student role."""
    token = mint_token(username="student-plain")
    resp = client.get("/v1/analytics", headers=_auth(token))
    assert resp.status_code == 403
