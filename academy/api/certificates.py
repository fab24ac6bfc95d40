"""Certificate requests, decisions and public verification.

  POST /v1/certificates/requests            student asks (auto: issued now)
  GET  /v1/certificates/requests            review queue for staff
  POST /v1/certificates/issue               instructor/admin issues
  POST /v1/certificates/reject              instructor/admin rejects a pending request
  GET  /v1/certificates/mine                caller's certificates
  GET  /v1/certificates/courses/{course_id} certificates issued for a course
  GET  /v1/certificates/performance/{course_id}/{student_id}
  GET  /v1/certificates/verify/{code}       public, no token
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from academy.api.dependencies import StaffPrincipal, StudentPrincipal, UserPrincipal
from academy.api.ratelimit import DECISIONS, require_rate_limit
from academy.models.certificate import (
    Certificate,
    CertificateRequest,
    CertificateRequestStatus,
)
from academy.services.registry import open_services

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


class CertificateRequestIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    course_id: UUID


class DecisionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    student_id: str = Field(min_length=1, max_length=255)
    course_id: UUID


class RejectionIn(DecisionIn):
    reason: str | None = Field(default=None, max_length=2000)


class CertificateOut(BaseModel):
    id: UUID
    student_id: str
    course_id: UUID
    course_title: str
    verification_code: str
    issued_at: int
    issued_by: str
    certificate_url: str


class CertificateRequestOut(BaseModel):
    id: UUID
    student_id: str
    course_id: UUID
    status: str
    requested_at: int
    decided_at: int | None
    decided_by: str | None
    reason: str | None


class VerificationOut(BaseModel):
    valid: bool
    student_id: str
    course_id: UUID
    course_title: str
    issued_at: int


class LessonBreakdownOut(BaseModel):
    total: int
    completed: int
    percentage: int
    by_type: dict[str, int]


class QuizBreakdownOut(BaseModel):
    total: int
    attempted: int
    passed: int
    attempts: int
    average_score: float


class AssignmentBreakdownOut(BaseModel):
    total: int
    submitted: int
    graded: int
    average_score: float


class PerformanceOut(BaseModel):
    student_id: str
    course_id: UUID
    lessons: LessonBreakdownOut
    quizzes: QuizBreakdownOut
    assignments: AssignmentBreakdownOut
    ready_for_certification: bool


def certificate_out(certificate: Certificate) -> CertificateOut:
    return CertificateOut(
        id=certificate.id,
        student_id=certificate.student_id,
        course_id=certificate.course_id,
        course_title=certificate.course_title,
        verification_code=certificate.verification_code,
        issued_at=certificate.issued_at,
        issued_by=certificate.issued_by,
        certificate_url=certificate.certificate_url,
    )


def request_out(request: CertificateRequest) -> CertificateRequestOut:
    return CertificateRequestOut(
        id=request.id,
        student_id=request.student_id,
        course_id=request.course_id,
        status=request.status.value,
        requested_at=request.requested_at,
        decided_at=request.decided_at,
        decided_by=request.decided_by,
        reason=request.reason,
    )


@router.post(
    "/requests",
    response_model=CertificateRequestOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit(DECISIONS))],
)
async def request_certificate(
    body: CertificateRequestIn, principal: StudentPrincipal
) -> CertificateRequestOut:
    async with open_services() as services:
        request = await services.certificates.request_certificate(principal, body.course_id)
    return request_out(request)


@router.get("/requests", response_model=list[CertificateRequestOut])
async def list_requests(
    principal: StaffPrincipal,
    request_status: CertificateRequestStatus | None = Query(default=None, alias="status"),
) -> list[CertificateRequestOut]:
    async with open_services() as services:
        requests = await services.certificates.list_requests(principal, request_status)
    return [request_out(r) for r in requests]


@router.post(
    "/issue",
    response_model=CertificateOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit(DECISIONS))],
)
async def issue(body: DecisionIn, principal: StaffPrincipal) -> CertificateOut:
    async with open_services() as services:
        certificate = await services.certificates.issue_certificate(
            principal, body.student_id, body.course_id
        )
    return certificate_out(certificate)


@router.post(
    "/reject",
    response_model=CertificateRequestOut,
    dependencies=[Depends(require_rate_limit(DECISIONS))],
)
async def reject(body: RejectionIn, principal: StaffPrincipal) -> CertificateRequestOut:
    async with open_services() as services:
        rejected = await services.certificates.reject_certificate_request(
            principal, body.student_id, body.course_id, body.reason
        )
    return request_out(rejected)


@router.get("/mine", response_model=list[CertificateOut])
async def my_certificates(principal: UserPrincipal) -> list[CertificateOut]:
    async with open_services() as services:
        certificates = await services.certificates.list_certificates(principal.user_id)
    return [certificate_out(c) for c in certificates]


@router.get("/courses/{course_id}", response_model=list[CertificateOut])
async def course_certificates(
    course_id: UUID, principal: StaffPrincipal
) -> list[CertificateOut]:
    async with open_services() as services:
        certificates = await services.certificates.list_course_certificates(
            principal, course_id
        )
    return [certificate_out(c) for c in certificates]


@router.get("/performance/{course_id}/{student_id}", response_model=PerformanceOut)
async def performance(
    course_id: UUID, student_id: str, principal: UserPrincipal
) -> PerformanceOut:
    """Students see their own summary; the course instructor and admins see anyone's."""
    async with open_services() as services:
        summary = await services.certificates.get_performance_summary(
            principal, student_id, course_id
        )
    return PerformanceOut(
        student_id=summary.student_id,
        course_id=summary.course_id,
        lessons=LessonBreakdownOut(
            total=summary.lessons.total,
            completed=summary.lessons.completed,
            percentage=summary.lessons.percentage,
            by_type={t.value: n for t, n in summary.lessons.by_type.items()},
        ),
        quizzes=QuizBreakdownOut(
            total=summary.quizzes.total,
            attempted=summary.quizzes.attempted,
            passed=summary.quizzes.passed,
            attempts=summary.quizzes.attempts,
            average_score=summary.quizzes.average_score,
        ),
        assignments=AssignmentBreakdownOut(
            total=summary.assignments.total,
            submitted=summary.assignments.submitted,
            graded=summary.assignments.graded,
            average_score=summary.assignments.average_score,
        ),
        ready_for_certification=summary.ready_for_certification,
    )


@router.get("/verify/{code}", response_model=VerificationOut)
async def verify(code: str) -> VerificationOut:
    """Public lookup by verification code.  Unknown codes are a 404."""
    async with open_services() as services:
        certificate = await services.certificates.verify(code)
    return VerificationOut(
        valid=True,
        student_id=certificate.student_id,
        course_id=certificate.course_id,
        course_title=certificate.course_title,
        issued_at=certificate.issued_at,
    )
