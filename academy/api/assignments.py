"""Assignment submissions and grading.

Students submit; the course instructor (or an admin) grades.  A student
may hold at most one ungraded submission per assignment, and may submit
again once the previous one is graded.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from academy.api.dependencies import StaffPrincipal, StudentPrincipal
from academy.api.ratelimit import DECISIONS, require_rate_limit
from academy.models.ledger import AssignmentSubmission, ResourceKind, SubmissionFile
from academy.services.registry import open_services

router = APIRouter(prefix="/v1", tags=["assignments"])


class SubmissionFileIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: ResourceKind
    name: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1, max_length=2048)


class SubmissionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    files: list[SubmissionFileIn]


class GradeIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    score: int
    feedback: str | None = Field(default=None, max_length=4000)


class SubmissionFileOut(BaseModel):
    kind: str
    name: str
    url: str


class SubmissionOut(BaseModel):
    id: UUID
    student_id: str
    assignment_id: UUID
    course_id: UUID
    status: str
    submitted_at: int
    files: list[SubmissionFileOut]
    score: int | None
    feedback: str | None
    graded_at: int | None
    graded_by: str | None


def submission_out(submission: AssignmentSubmission) -> SubmissionOut:
    return SubmissionOut(
        id=submission.id,
        student_id=submission.student_id,
        assignment_id=submission.assignment_id,
        course_id=submission.course_id,
        status=submission.status.value,
        submitted_at=submission.submitted_at,
        files=[
            SubmissionFileOut(kind=f.kind.value, name=f.name, url=f.url)
            for f in submission.files
        ],
        score=submission.score,
        feedback=submission.feedback,
        graded_at=submission.graded_at,
        graded_by=submission.graded_by,
    )


@router.post(
    "/assignments/{assignment_id}/submissions",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit())],
)
async def submit(
    assignment_id: UUID, body: SubmissionIn, principal: StudentPrincipal
) -> SubmissionOut:
    files = [SubmissionFile(kind=f.kind, name=f.name, url=f.url) for f in body.files]
    async with open_services() as services:
        submission = await services.ledger.record_assignment_submission(
            principal, assignment_id, files
        )
    return submission_out(submission)


@router.get("/assignments/{assignment_id}/submissions", response_model=list[SubmissionOut])
async def list_submissions(
    assignment_id: UUID, principal: StaffPrincipal
) -> list[SubmissionOut]:
    async with open_services() as services:
        submissions = await services.ledger.list_submissions(principal, assignment_id)
    return [submission_out(s) for s in submissions]


@router.get("/submissions/pending", response_model=list[SubmissionOut])
async def pending_submissions(principal: StaffPrincipal) -> list[SubmissionOut]:
    """Grading queue: ungraded work in the caller's courses."""
    async with open_services() as services:
        submissions = await services.ledger.list_pending_submissions(principal)
    return [submission_out(s) for s in submissions]


@router.post(
    "/submissions/{submission_id}/grade",
    response_model=SubmissionOut,
    dependencies=[Depends(require_rate_limit(DECISIONS))],
)
async def grade(
    submission_id: UUID, body: GradeIn, principal: StaffPrincipal
) -> SubmissionOut:
    async with open_services() as services:
        graded = await services.ledger.grade_assignment(
            principal, submission_id, body.score, body.feedback
        )
    return submission_out(graded)
