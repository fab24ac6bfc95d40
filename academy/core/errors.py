"""Domain error taxonomy.

Every failure the core can report carries a machine-readable ``code``
and belongs to one ``ErrorKind``.  The API layer maps kinds to HTTP
status codes in a single exception handler (academy/main.py); services
never raise HTTPException themselves.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    LIMIT_EXCEEDED = "limit_exceeded"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    FORBIDDEN = "forbidden"
    UNAVAILABLE = "unavailable"


class AcademyError(Exception):
    """Base error for the progress/certification core."""

    kind: ErrorKind = ErrorKind.INVALID_STATE
    code: str = "academy_error"
    default_message: str = "Operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# NotFound
# ---------------------------------------------------------------------------


class NotFound(AcademyError):
    kind = ErrorKind.NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class EnrollmentNotFound(NotFound):
    code = "enrollment_not_found"
    default_message = "Student is not enrolled in this course"


class CourseNotFound(NotFound):
    code = "course_not_found"
    default_message = "Course not found"


class LessonNotFound(NotFound):
    code = "lesson_not_found"
    default_message = "Lesson not found"


class QuizNotFound(NotFound):
    code = "quiz_not_found"
    default_message = "Quiz not found"


class AssignmentNotFound(NotFound):
    code = "assignment_not_found"
    default_message = "Assignment not found"


class SubmissionNotFound(NotFound):
    code = "submission_not_found"
    default_message = "Submission not found"


class CertificateNotFound(NotFound):
    code = "certificate_not_found"
    default_message = "Certificate not found"


class CertificateRequestNotFound(NotFound):
    code = "certificate_request_not_found"
    default_message = "No pending certificate request for this student and course"


# ---------------------------------------------------------------------------
# InvalidState
# ---------------------------------------------------------------------------


class InvalidState(AcademyError):
    kind = ErrorKind.INVALID_STATE
    code = "invalid_state"


class CourseNotCompleted(InvalidState):
    code = "course_not_completed"
    default_message = "Course has not been completed"


class AlreadyCertified(InvalidState):
    code = "already_certified"
    default_message = "Certificate already issued for this course"


class AlreadyGraded(InvalidState):
    code = "already_graded"
    default_message = "Submission has already been graded"


# ---------------------------------------------------------------------------
# LimitExceeded
# ---------------------------------------------------------------------------


class LimitExceeded(AcademyError):
    kind = ErrorKind.LIMIT_EXCEEDED
    code = "limit_exceeded"


class AttemptLimitExceeded(LimitExceeded):
    code = "attempt_limit_exceeded"
    default_message = "Maximum number of quiz attempts reached"


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------


class Conflict(AcademyError):
    kind = ErrorKind.CONFLICT
    code = "conflict"


class DuplicateSubmission(Conflict):
    code = "duplicate_submission"
    default_message = "An ungraded submission already exists for this assignment"


class AlreadyEnrolled(Conflict):
    code = "already_enrolled"
    default_message = "Student is already enrolled in this course"


class VerificationCodeCollision(Conflict):
    code = "verification_code_collision"
    default_message = "Verification code already in use"


class CodeGenerationFailed(Conflict):
    code = "code_generation_failed"
    default_message = "Could not generate a unique verification code"


# ---------------------------------------------------------------------------
# ValidationError
# ---------------------------------------------------------------------------


class ValidationError(AcademyError):
    kind = ErrorKind.VALIDATION
    code = "validation_error"
    default_message = "Invalid input"


class InvalidScore(ValidationError):
    code = "invalid_score"
    default_message = "Score is out of range"


class InvalidInput(ValidationError):
    code = "invalid_input"


# ---------------------------------------------------------------------------
# Forbidden / Unavailable
# ---------------------------------------------------------------------------


class Forbidden(AcademyError):
    kind = ErrorKind.FORBIDDEN
    code = "forbidden"
    default_message = "Insufficient permissions"


class NotCourseInstructor(Forbidden):
    code = "not_course_instructor"
    default_message = "Only the course instructor can perform this action"


class Unavailable(AcademyError):
    kind = ErrorKind.UNAVAILABLE
    code = "unavailable"
    default_message = "Storage is temporarily unavailable"
