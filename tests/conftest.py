from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

# Before any academy import: SETTINGS is read once at import time
os.environ.setdefault("APP_ENV", "test")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

# Ensure repo root is on sys.path so `import academy` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from academy.api.ratelimit import _rate_limiter  # noqa: E402
from academy.main import app  # noqa: E402
from academy.models.catalog import (  # noqa: E402
    Assignment,
    Course,
    CourseModule,
    Lesson,
    LessonType,
    Quiz,
)
from academy.repos.catalog_repo import InMemoryCatalogRepo  # noqa: E402
from academy.services import token_service  # noqa: E402
from academy.services.cache import cache_service  # noqa: E402
from academy.services.registry import catalog_repo, reset_memory_state  # noqa: E402
from academy.services.task_queue import task_queue  # noqa: E402

INSTRUCTOR_ID = "instructor-ada"
OTHER_INSTRUCTOR_ID = "instructor-lin"
STUDENT_ID = "student-sam"


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Empty the shared in-memory repositories between tests."""
    reset_memory_state()


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Clear rate limit buckets between tests so limits don't bleed."""
    if hasattr(_rate_limiter, "_buckets"):
        _rate_limiter._buckets.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = STUDENT_ID,
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_token() -> str:
    return mint_token(STUDENT_ID, ["student"])


@pytest.fixture
def instructor_token() -> str:
    return mint_token(INSTRUCTOR_ID, ["instructor"])


@pytest.fixture
def other_instructor_token() -> str:
    return mint_token(OTHER_INSTRUCTOR_ID, ["instructor"])


@pytest.fixture
def admin_token() -> str:
    return mint_token("admin-root", ["admin"])


# ---------------------------------------------------------------------------
# Catalog helpers
# ---------------------------------------------------------------------------


@dataclass
class SeededCourse:
    course: Course
    lessons: list[Lesson]
    quiz: Quiz | None
    assignment: Assignment | None


def build_course(
    repo: InMemoryCatalogRepo,
    *,
    slug: str = "web-pentesting-101",
    instructor_id: str = INSTRUCTOR_ID,
    lesson_count: int = 4,
    with_quiz: bool = True,
    with_assignment: bool = True,
    max_attempts: int | None = 3,
    price: Decimal = Decimal("100.00"),
    rating: float = 4.5,
) -> SeededCourse:
    """Add a one-module course with ``lesson_count`` lessons to ``repo``.

    When requested, the first lesson carries the quiz and the second the
    assignment; the rest are videos.
    """
    course = repo.add_course(
        Course.new(
            slug=slug,
            title=slug.replace("-", " ").title(),
            instructor_id=instructor_id,
            price=price,
            rating=rating,
        )
    )
    module = repo.add_module(CourseModule.new(course_id=course.id, position=1, title="Core"))
    lessons = []
    for i in range(lesson_count):
        if i == 0 and with_quiz:
            kind = LessonType.QUIZ
        elif i == 1 and with_assignment:
            kind = LessonType.ASSIGNMENT
        else:
            kind = LessonType.VIDEO
        lessons.append(
            repo.add_lesson(Lesson.new(module=module, title=f"Lesson {i + 1}", type=kind, position=i))
        )

    quiz = None
    if with_quiz:
        quiz = repo.add_quiz(
            Quiz.new(lesson=lessons[0], title="Checkpoint", max_attempts=max_attempts)
        )
    assignment = None
    if with_assignment:
        assignment = repo.add_assignment(Assignment.new(lesson=lessons[1], title="Lab report"))
    return SeededCourse(course=course, lessons=lessons, quiz=quiz, assignment=assignment)


@pytest.fixture
def seeded() -> SeededCourse:
    """A four-lesson course with a quiz and an assignment in the shared catalog."""
    return build_course(catalog_repo)
