"""Service wiring.

Same conditional pattern as the cache and task queue: with
DATABASE_URL set, each request gets services bound to a fresh
``AsyncSession`` over the Postgres repositories; without it, every
request shares the in-memory repositories.

The pair locks, notification publisher and cache are process-wide in
both modes.  Each unit of work publishes through its own outbox.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.core.errors import Unavailable
from academy.db.engine import async_session_factory
from academy.models.catalog import Assignment, Course, CourseModule, Lesson, LessonType, Quiz
from academy.repos.catalog_repo import CatalogRepo, InMemoryCatalogRepo
from academy.repos.certificate_repo import CertificateRepo, InMemoryCertificateRepo
from academy.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from academy.repos.ledger_repo import InMemoryLedgerRepo, LedgerRepo
from academy.repos.pg_catalog_repo import PgCatalogRepo
from academy.repos.pg_certificate_repo import PgCertificateRepo
from academy.repos.pg_enrollment_repo import PgEnrollmentRepo
from academy.repos.pg_ledger_repo import PgLedgerRepo
from academy.services.analytics_service import AnalyticsService
from academy.services.cache import cache_service
from academy.services.certificate_service import CertificateService
from academy.services.enrollment_service import EnrollmentService
from academy.services.ledger_service import LedgerService
from academy.services.locks import PairLocks
from academy.services.notifications import (
    NotificationPublisher,
    OutboxPublisher,
    QueueNotificationPublisher,
)
from academy.services.progress_calculator import ProgressCalculator
from academy.services.task_queue import task_queue

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Services:
    catalog: CatalogRepo
    calculator: ProgressCalculator
    enrollments: EnrollmentService
    ledger: LedgerService
    certificates: CertificateService
    analytics: AnalyticsService


def build_services(
    *,
    catalog: CatalogRepo,
    enrollments: EnrollmentRepo,
    ledger: LedgerRepo,
    certificates: CertificateRepo,
    publisher: NotificationPublisher,
    locks: PairLocks,
) -> Services:
    calculator = ProgressCalculator(catalog, ledger)
    enrollment_service = EnrollmentService(catalog, enrollments, calculator, publisher)
    return Services(
        catalog=catalog,
        calculator=calculator,
        enrollments=enrollment_service,
        ledger=LedgerService(catalog, ledger, enrollment_service, locks),
        certificates=CertificateService(
            catalog,
            ledger,
            certificates,
            enrollment_service,
            calculator,
            publisher,
            locks,
        ),
        analytics=AnalyticsService(catalog, enrollments, certificates, cache_service),
    )


# ---------------------------------------------------------------------------
# Process-wide singletons
# ---------------------------------------------------------------------------

pair_locks = PairLocks()
publisher: NotificationPublisher = QueueNotificationPublisher(task_queue)

catalog_repo = InMemoryCatalogRepo()
enrollment_repo = InMemoryEnrollmentRepo()
ledger_repo = InMemoryLedgerRepo()
certificate_repo = InMemoryCertificateRepo()


def reset_memory_state() -> None:
    """Empty every in-memory repository (tests, dev reseed)."""
    catalog_repo.clear()
    enrollment_repo.clear()
    ledger_repo.clear()
    certificate_repo.clear()


@asynccontextmanager
async def open_services() -> AsyncIterator[Services]:
    """Yield services for one unit of work.

    Postgres mode commits when the block exits cleanly and rolls back on
    any error.  Storage failures leave as ``Unavailable``; domain errors
    pass through unchanged.  Domain events are held back until the unit
    of work is over, then sent only if its writes were kept.
    """
    if async_session_factory is None:
        async with _open_memory_services() as services:
            yield services
        return

    async with open_pg_services(async_session_factory) as services:
        yield services


@asynccontextmanager
async def _open_memory_services() -> AsyncIterator[Services]:
    outbox = OutboxPublisher(publisher)
    services = build_services(
        catalog=catalog_repo,
        enrollments=enrollment_repo,
        ledger=ledger_repo,
        certificates=certificate_repo,
        publisher=outbox,
        locks=pair_locks,
    )
    try:
        yield services
    except RedisError as exc:
        logger.exception("Redis failure")
        raise Unavailable() from exc
    finally:
        # Nothing rolls back in memory, so every recorded event stands
        await outbox.flush()


@asynccontextmanager
async def open_pg_services(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    locks: PairLocks | None = None,
    events: NotificationPublisher | None = None,
) -> AsyncIterator[Services]:
    """One session, one transaction, one outbox.

    ``locks`` and ``events`` default to the process-wide pair locks and
    queue publisher.
    """
    outbox = OutboxPublisher(events if events is not None else publisher)
    async with session_factory() as session:
        services = build_services(
            catalog=PgCatalogRepo(session),
            enrollments=PgEnrollmentRepo(session),
            ledger=PgLedgerRepo(session),
            certificates=PgCertificateRepo(session),
            publisher=outbox,
            locks=locks if locks is not None else pair_locks,
        )
        try:
            yield services
            await session.commit()
        except (SQLAlchemyError, RedisError) as exc:
            outbox.discard()
            await session.rollback()
            logger.exception("Storage failure, transaction rolled back")
            raise Unavailable() from exc
        except Exception:
            outbox.discard()
            await session.rollback()
            raise
    await outbox.flush()


def seed_demo_catalog(repo: InMemoryCatalogRepo) -> list[Course]:
    """Load a small catalog for local development.

    Two instructors, three published courses, a mix of lesson types, one
    quiz with an attempt limit and one assignment.
    """
    courses = [
        Course.new(
            slug="web-pentesting-101",
            title="Web Application Penetration Testing",
            instructor_id="instructor-ada",
            price=Decimal("149.00"),
            rating=4.8,
        ),
        Course.new(
            slug="network-defense",
            title="Network Defense Fundamentals",
            instructor_id="instructor-ada",
            price=Decimal("99.00"),
            rating=4.5,
        ),
        Course.new(
            slug="malware-analysis",
            title="Introduction to Malware Analysis",
            instructor_id="instructor-lin",
            price=Decimal("199.00"),
            rating=4.9,
        ),
    ]
    for course in courses:
        repo.add_course(course)
        intro = repo.add_module(CourseModule.new(course_id=course.id, position=1, title="Foundations"))
        lab = repo.add_module(CourseModule.new(course_id=course.id, position=2, title="Hands-on"))
        repo.add_lesson(Lesson.new(module=intro, title="Welcome", type=LessonType.VIDEO, position=1))
        repo.add_lesson(
            Lesson.new(module=intro, title="Threat landscape", type=LessonType.ARTICLE, position=2)
        )
        quiz_lesson = repo.add_lesson(
            Lesson.new(module=lab, title="Checkpoint quiz", type=LessonType.QUIZ, position=1)
        )
        repo.add_quiz(Quiz.new(lesson=quiz_lesson, title="Checkpoint", max_attempts=3))
        lab_lesson = repo.add_lesson(
            Lesson.new(module=lab, title="Lab report", type=LessonType.ASSIGNMENT, position=2)
        )
        repo.add_assignment(Assignment.new(lesson=lab_lesson, title="Lab report"))
    logger.info("Seeded demo catalog with %d courses", len(courses))
    return courses
