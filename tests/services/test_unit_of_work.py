"""Row locking and event release around one unit of work."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from academy.core.errors import CourseNotCompleted, EnrollmentNotFound, Unavailable
from academy.models.events import DomainEvent, EventType
from academy.models.ledger import ResourceKind, SubmissionFile
from academy.repos.catalog_repo import InMemoryCatalogRepo
from academy.repos.certificate_repo import InMemoryCertificateRepo
from academy.repos.enrollment_repo import InMemoryEnrollmentRepo
from academy.repos.ledger_repo import InMemoryLedgerRepo
from academy.services.locks import PairLocks
from academy.services.notifications import OutboxPublisher, RecordingNotificationPublisher
from academy.services.registry import build_services, open_pg_services
from tests.conftest import build_course


def _event(event_type: EventType = EventType.COURSE_COMPLETED) -> DomainEvent:
    return DomainEvent.new(
        type=event_type, student_id="student-sam", course_id=uuid4(), occurred_at=1768435200
    )


# ---------------------------------------------------------------------------
# Enrollment row lock
# ---------------------------------------------------------------------------


class JournalEnrollmentRepo(InMemoryEnrollmentRepo):
    def __init__(self, journal: list[str]) -> None:
        super().__init__()
        self._journal = journal

    async def lock(self, student_id, course_id):
        self._journal.append("lock")
        return await super().lock(student_id, course_id)


class JournalLedgerRepo(InMemoryLedgerRepo):
    def __init__(self, journal: list[str]) -> None:
        super().__init__()
        self._journal = journal

    async def add_lesson_completion(self, completion):
        self._journal.append("lesson")
        return await super().add_lesson_completion(completion)

    async def add_quiz_attempt(self, attempt):
        self._journal.append("quiz")
        return await super().add_quiz_attempt(attempt)

    async def add_submission(self, submission):
        self._journal.append("submission")
        return await super().add_submission(submission)

    async def grade_submission(self, submission_id, **fields):
        self._journal.append("grade")
        return await super().grade_submission(submission_id, **fields)


class JournalCertificateRepo(InMemoryCertificateRepo):
    def __init__(self, journal: list[str]) -> None:
        super().__init__()
        self._journal = journal

    async def add(self, certificate):
        self._journal.append("certificate")
        return await super().add(certificate)


@pytest.fixture
def journal() -> list[str]:
    return []


@pytest.fixture
def journaled(journal):
    catalog = InMemoryCatalogRepo()
    services = build_services(
        catalog=catalog,
        enrollments=JournalEnrollmentRepo(journal),
        ledger=JournalLedgerRepo(journal),
        certificates=JournalCertificateRepo(journal),
        publisher=RecordingNotificationPublisher(),
        locks=PairLocks(),
    )
    return services, build_course(catalog)


def test_every_write_locks_the_enrollment_first(journaled, journal, student, instructor) -> None:
    services, seeded = journaled
    lab = SubmissionFile(
        kind=ResourceKind.PDF, name="report.pdf", url="https://files.example/r.pdf"
    )

    async def flow() -> None:
        await services.enrollments.enroll(student, seeded.course.id)
        await services.ledger.record_lesson_complete(student, seeded.lessons[0].id)
        await services.ledger.record_quiz_attempt(student, seeded.quiz.id, 85)
        submission = await services.ledger.record_assignment_submission(
            student, seeded.assignment.id, [lab]
        )
        await services.ledger.grade_assignment(instructor, submission.id, 90)
        for lesson in seeded.lessons[1:]:
            await services.ledger.record_lesson_complete(student, lesson.id)
        await services.certificates.issue_certificate(
            instructor, student.user_id, seeded.course.id
        )

    asyncio.run(flow())

    assert journal == [
        "lock", "lesson",
        "lock", "quiz",
        "lock", "submission",
        "lock", "grade",
        "lock", "lesson",
        "lock", "lesson",
        "lock", "lesson",
        "lock", "certificate",
    ]


def test_write_without_enrollment_stops_at_the_lock(journaled, journal, student) -> None:
    services, seeded = journaled

    with pytest.raises(EnrollmentNotFound):
        asyncio.run(services.ledger.record_lesson_complete(student, seeded.lessons[0].id))
    assert journal == ["lock"]


# ---------------------------------------------------------------------------
# Outbox
# ---------------------------------------------------------------------------


def test_outbox_holds_events_until_flushed() -> None:
    sent = RecordingNotificationPublisher()
    outbox = OutboxPublisher(sent)

    asyncio.run(outbox.publish(_event(EventType.COURSE_COMPLETED)))
    asyncio.run(outbox.publish(_event(EventType.CERTIFICATE_ISSUED)))
    assert sent.events == []
    assert len(outbox) == 2

    asyncio.run(outbox.flush())
    assert [e.type for e in sent.events] == [
        EventType.COURSE_COMPLETED,
        EventType.CERTIFICATE_ISSUED,
    ]
    assert len(outbox) == 0


def test_outbox_discard_drops_pending_events() -> None:
    sent = RecordingNotificationPublisher()
    outbox = OutboxPublisher(sent)

    asyncio.run(outbox.publish(_event()))
    outbox.discard()
    asyncio.run(outbox.flush())

    assert sent.events == []


class FakeSession:
    """Just enough of AsyncSession for the commit and rollback paths."""

    def __init__(self, fail_commit: bool = False) -> None:
        self.fail_commit = fail_commit
        self.committed = False
        self.rolled_back = False

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def commit(self) -> None:
        if self.fail_commit:
            raise OperationalError("COMMIT", None, ConnectionError("connection reset"))
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True


def _publish_inside(session: FakeSession, sent, *, fail: Exception | None = None) -> None:
    async def unit() -> None:
        async with open_pg_services(lambda: session, events=sent) as services:
            await services.enrollments._publisher.publish(_event())
            assert sent.events == []
            if fail is not None:
                raise fail

    asyncio.run(unit())


def test_events_sent_after_commit() -> None:
    session, sent = FakeSession(), RecordingNotificationPublisher()

    _publish_inside(session, sent)

    assert session.committed
    assert [e.type for e in sent.events] == [EventType.COURSE_COMPLETED]


def test_events_dropped_when_unit_fails() -> None:
    session, sent = FakeSession(), RecordingNotificationPublisher()

    with pytest.raises(CourseNotCompleted):
        _publish_inside(session, sent, fail=CourseNotCompleted())

    assert session.rolled_back
    assert not session.committed
    assert sent.events == []


def test_events_dropped_when_commit_fails() -> None:
    session, sent = FakeSession(fail_commit=True), RecordingNotificationPublisher()

    with pytest.raises(Unavailable):
        _publish_inside(session, sent)

    assert session.rolled_back
    assert sent.events == []
