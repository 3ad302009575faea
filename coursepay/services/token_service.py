"""JWT access token creation and validation (ES256).

Tokens are issued by the platform's identity service; this service only
verifies them.  ``create_access_token`` exists so tests and local tooling
can mint tokens signed with the same key the verifier trusts.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from coursepay.core.config import SETTINGS

# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# An ephemeral EC key pair is generated on import so dev and test can mint
# tokens.  With JWT_PUBLIC_KEY_FILE set, verification trusts the identity
# service's PEM public key instead, and locally minted tokens are rejected.
_private_key = ec.generate_private_key(ec.SECP256R1())


def _load_public_key() -> ec.EllipticCurvePublicKey:
    if SETTINGS.jwt_public_key_file is None:
        return _private_key.public_key()
    with open(SETTINGS.jwt_public_key_file, "rb") as fh:
        key = serialization.load_pem_public_key(fh.read())
    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise ValueError("JWT_PUBLIC_KEY_FILE must hold an EC public key")
    return key


_public_key = _load_public_key()

ALGORITHM = "ES256"
ISSUER = "coursepay"
AUDIENCE = "coursepay"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    name: str | None = None,
    email: str | None = None,
    ttl_minutes: int = ACCESS_TOKEN_TTL_MIN,
) -> str:
    """Build and sign a JWT access token.

    Always carries sub, iss, aud, exp, iat, jti and roles.  name and email
    are profile claims, included when given.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["student"],
    }
    if name is not None:
        payload["name"] = name
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins algorithm to ES256 to prevent alg:none and alg-switching attacks.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
