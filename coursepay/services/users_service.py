"""Local user records.

Accounts are owned by the identity service; this service keeps a copy
of the fields checkout needs (name and email for the gateway, role for
teacher checks, enrolled courses for access).  A record is provisioned
from the caller's token claims by ``ensure_user`` the first time they
check out; ``create_user`` is the direct path used by tooling.
"""

from __future__ import annotations

import logging
from uuid import UUID

from coursepay.db.store import Store
from coursepay.models.principal import Principal
from coursepay.models.user import ROLES, User
from coursepay.services.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Highest privilege first: a token carrying several roles keeps the strongest.
_ROLE_PRECEDENCE = ("admin", "teacher", "student")


async def create_user(
    store: Store, *, name: str, email: str, role: str = "student"
) -> User:
    if not email or not email.strip():
        logger.warning("Rejected blank email")
        raise ValidationError("Email is required")
    if role not in ROLES:
        raise ValidationError(f"Role must be one of {', '.join(ROLES)}")

    user = User.new(name=name, email=email, role=role)
    async with store.transaction() as repos:
        try:
            await repos.users.add(user)
        except ValueError:
            logger.warning("Rejected duplicate email=%s", user.email)
            raise ConflictError("Email already exists") from None
    logger.info("Created user id=%s role=%s", user.id, user.role)
    return user


async def ensure_user(store: Store, principal: Principal) -> User:
    """Return the caller's local record, creating it from token claims.

    An existing record is returned as stored; claims never overwrite it.
    A caller with no record and no ``email`` claim cannot be provisioned
    and gets NotFoundError, as before.
    """
    user_id = principal.user_uuid
    if user_id is None:
        raise ValidationError("Token subject is not a user id")

    async with store.transaction() as repos:
        existing = await repos.users.get_by_id(user_id)
    if existing is not None:
        return existing
    if not principal.email or not principal.email.strip():
        logger.warning("Cannot provision user=%s: token has no email", user_id)
        raise NotFoundError("User not found")

    role = next((r for r in _ROLE_PRECEDENCE if principal.has_role(r)), "student")
    user = User.new(
        name=principal.name or "",
        email=principal.email,
        role=role,
        user_id=user_id,
    )
    try:
        async with store.transaction() as repos:
            await repos.users.add(user)
    except ValueError:
        # Either a concurrent request provisioned the same id, or the email
        # belongs to another record.
        async with store.transaction() as repos:
            existing = await repos.users.get_by_id(user_id)
        if existing is None:
            logger.warning("Rejected duplicate email=%s", user.email)
            raise ConflictError("Email already exists") from None
        return existing
    logger.info("Provisioned user id=%s role=%s from token", user.id, user.role)
    return user


async def get_user(store: Store, user_id: UUID) -> User:
    async with store.transaction() as repos:
        user = await repos.users.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user
