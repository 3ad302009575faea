from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system.

        user_id: subject from the JWT (a User id)
        roles: platform roles (student, teacher, admin)
        name, email: profile claims, when the identity service sends them
    """

    user_id: str
    roles: frozenset[str]
    name: str | None = None
    email: str | None = None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_admin(self) -> bool:
        return "admin" in self.roles

    @property
    def user_uuid(self) -> UUID | None:
        """The subject as a UUID, or None when it is not one."""
        try:
            return UUID(self.user_id)
        except ValueError:
            return None
