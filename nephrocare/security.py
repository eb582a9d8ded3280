"""Session validation for bearer tokens issued by the identity provider.

The identity provider signs short-lived HS256 session tokens carrying the
clinician id (``sub``), email and display name. This module validates those
tokens and turns them into a ``SessionUser`` that services use for ownership
checks. Issuing tokens is exposed for development tooling and tests.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Set

from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from nephrocare.errors import UnauthorizedError


bearer_scheme = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"


@dataclass
class SessionUser:
    """Authenticated clinician attached to a request."""

    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    roles: Set[str] = field(default_factory=set)
    claims: Optional[Dict] = None


class SessionValidator:
    """Validates HS256 session tokens against the shared secret."""

    def __init__(self, secret: str, issuer: Optional[str] = None) -> None:
        self.secret = secret
        self.issuer = issuer

    def validate(self, token: str) -> SessionUser:
        try:
            options = {"verify_aud": False, "verify_iss": bool(self.issuer)}
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options=options,
            )
        except JWTError as exc:
            raise UnauthorizedError(f"Invalid session token: {exc}") from exc

        subject = claims.get("sub")
        if not subject:
            raise UnauthorizedError("Session token has no subject")

        roles = claims.get("roles") or []
        return SessionUser(
            user_id=str(subject),
            email=claims.get("email"),
            name=claims.get("name"),
            roles=set(roles) if isinstance(roles, (list, tuple)) else set(),
            claims=claims,
        )

    def issue(
        self,
        user_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
        expires_minutes: int = 60,
    ) -> str:
        """Create a signed session token (development login and tests)."""
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + timedelta(minutes=expires_minutes)).timestamp()),
        }
        if email:
            payload["email"] = email
        if name:
            payload["name"] = name
        if self.issuer:
            payload["iss"] = self.issuer
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)
