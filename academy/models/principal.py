from __future__ import annotations

from dataclasses import dataclass

STUDENT = "student"
INSTRUCTOR = "instructor"
ADMIN = "admin"


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    Passed explicitly into every service call; nothing in the core reads
    "the current user" from ambient state.

        user_id: subject from JWT (student or instructor reference)
        roles: platform roles (student, instructor, admin)
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return ADMIN in self.roles

    def is_instructor(self) -> bool:
        return INSTRUCTOR in self.roles

    def can_manage_course(self, instructor_id: str) -> bool:
        """True for the course's own instructor and for admins."""
        return self.is_admin() or (
            self.is_instructor() and self.user_id == instructor_id
        )
