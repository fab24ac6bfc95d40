from __future__ import annotations

from dataclasses import dataclass

import pytest

from academy.models.events import EventType
from academy.models.principal import ADMIN, INSTRUCTOR, STUDENT, Principal
from academy.repos.catalog_repo import InMemoryCatalogRepo
from academy.repos.certificate_repo import InMemoryCertificateRepo
from academy.repos.enrollment_repo import InMemoryEnrollmentRepo
from academy.repos.ledger_repo import InMemoryLedgerRepo
from academy.services.certificate_service import CertificateService
from academy.services.enrollment_service import EnrollmentService
from academy.services.ledger_service import LedgerService
from academy.services.locks import PairLocks
from academy.services.notifications import RecordingNotificationPublisher
from academy.services.progress_calculator import ProgressCalculator
from tests.conftest import INSTRUCTOR_ID, OTHER_INSTRUCTOR_ID, STUDENT_ID

# 2026-01-15T00:00:00Z
START = 1768435200


class FakeClock:
    def __init__(self, now: int = START) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@dataclass
class World:
    """Services over private in-memory repos, a fake clock and recorded events."""

    catalog: InMemoryCatalogRepo
    enrollment_repo: InMemoryEnrollmentRepo
    ledger_repo: InMemoryLedgerRepo
    certificate_repo: InMemoryCertificateRepo
    publisher: RecordingNotificationPublisher
    locks: PairLocks
    clock: FakeClock
    calculator: ProgressCalculator
    enrollments: EnrollmentService
    ledger: LedgerService
    certificates: CertificateService

    def certificate_service(self, **overrides) -> CertificateService:
        options = {"auto_issue": False, "clock": self.clock}
        options.update(overrides)
        return CertificateService(
            self.catalog,
            self.ledger_repo,
            self.certificate_repo,
            self.enrollments,
            self.calculator,
            self.publisher,
            self.locks,
            **options,
        )

    def events(self, event_type: EventType) -> list:
        return [e for e in self.publisher.events if e.type is event_type]


@pytest.fixture
def world() -> World:
    catalog = InMemoryCatalogRepo()
    enrollment_repo = InMemoryEnrollmentRepo()
    ledger_repo = InMemoryLedgerRepo()
    certificate_repo = InMemoryCertificateRepo()
    publisher = RecordingNotificationPublisher()
    locks = PairLocks()
    clock = FakeClock()
    calculator = ProgressCalculator(catalog, ledger_repo)
    enrollments = EnrollmentService(catalog, enrollment_repo, calculator, publisher, clock=clock)
    ledger = LedgerService(catalog, ledger_repo, enrollments, locks, clock=clock)
    certificates = CertificateService(
        catalog,
        ledger_repo,
        certificate_repo,
        enrollments,
        calculator,
        publisher,
        locks,
        auto_issue=False,
        clock=clock,
    )
    return World(
        catalog=catalog,
        enrollment_repo=enrollment_repo,
        ledger_repo=ledger_repo,
        certificate_repo=certificate_repo,
        publisher=publisher,
        locks=locks,
        clock=clock,
        calculator=calculator,
        enrollments=enrollments,
        ledger=ledger,
        certificates=certificates,
    )


@pytest.fixture
def student() -> Principal:
    return Principal(user_id=STUDENT_ID, roles=frozenset({STUDENT}))


@pytest.fixture
def instructor() -> Principal:
    return Principal(user_id=INSTRUCTOR_ID, roles=frozenset({INSTRUCTOR}))


@pytest.fixture
def other_instructor() -> Principal:
    return Principal(user_id=OTHER_INSTRUCTOR_ID, roles=frozenset({INSTRUCTOR}))


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id="admin-root", roles=frozenset({ADMIN}))
