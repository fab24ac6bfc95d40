"""Demo: one student from enrollment to a verified certificate.

Runs against the in-memory app with the dev demo catalog:
    APP_ENV=dev python scripts/demo_certificate_flow.py
"""

from __future__ import annotations

import asyncio
import uuid

from fastapi.testclient import TestClient

from academy.main import app
from academy.services import token_service
from academy.services.registry import catalog_repo

STUDENT = "student-demo"
INSTRUCTOR = "instructor-ada"


def _bearer(sub: str, role: str) -> dict[str, str]:
    token = token_service.create_access_token(sub=sub, roles=[role])
    return {"Authorization": f"Bearer {token}"}


def main() -> None:
    student = _bearer(STUDENT, "student")
    instructor = _bearer(INSTRUCTOR, "instructor")

    # Lifespan seeds the demo catalog on startup
    with TestClient(app) as client:
        # ── Step 1: pick a course ───────────────────────────────────
        courses = client.get("/v1/courses", headers=student).json()
        course = next(c for c in courses if c["instructor_id"] == INSTRUCTOR)
        print(f"1. GET  /v1/courses                  → {course['slug']}")

        # ── Step 2: enroll ──────────────────────────────────────────
        r = client.post(f"/v1/courses/{course['id']}/enroll", headers=student)
        print(f"2. POST enroll                       → {r.status_code}  {r.json()['status']}")

        # ── Step 3: certificate too early ───────────────────────────
        r = client.post(
            "/v1/certificates/requests", json={"course_id": course["id"]}, headers=student
        )
        print(f"3. POST certificate request (early)  → {r.status_code}  {r.json()['code']}")

        # ── Step 4: work through every lesson ───────────────────────
        lessons = asyncio.run(catalog_repo.list_lessons(uuid.UUID(course["id"])))
        for lesson in lessons:
            r = client.post(f"/v1/progress/lessons/{lesson.id}/complete", headers=student)
            enrollment = r.json()["enrollment"]
            print(
                f"4. POST complete {lesson.title:<18} → {enrollment['progress']:>3}%  "
                f"{enrollment['status']}"
            )

        # ── Step 5: request, then the instructor issues ─────────────
        r = client.post(
            "/v1/certificates/requests", json={"course_id": course["id"]}, headers=student
        )
        print(f"5. POST certificate request          → {r.status_code}  {r.json()['status']}")

        r = client.post(
            "/v1/certificates/issue",
            json={"student_id": STUDENT, "course_id": course["id"]},
            headers=instructor,
        )
        code = r.json()["verification_code"]
        print(f"6. POST issue (instructor)           → {r.status_code}  {code}")

        # ── Step 7: anyone can verify ───────────────────────────────
        r = client.get(f"/v1/certificates/verify/{code}")
        print(f"7. GET  verify                       → {r.status_code}  valid={r.json()['valid']}")


if __name__ == "__main__":
    main()
