from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

ROLES = ("student", "teacher", "admin")


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    name: str
    email: str
    role: str = "student"  # student|teacher|admin
    enrolled_courses: frozenset[UUID] = frozenset()

    @staticmethod
    def new(
        *, name: str, email: str, role: str = "student", user_id: UUID | None = None
    ) -> User:
        if role not in ROLES:
            raise ValueError(f"role must be one of {ROLES} (got {role!r})")
        return User(
            id=user_id or uuid4(),
            name=name.strip(),
            email=email.strip().lower(),
            role=role,
        )
