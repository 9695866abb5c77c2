from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt

from lavasrc.exceptions import TokenError


@dataclass
class AccessToken:
    """A bearer token and the epoch second it stops being valid."""

    value: str
    expires_at: float
    claims: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, leeway: float = 30) -> bool:
        return self.expires_at - time.time() <= leeway

    @classmethod
    def from_expires_in(cls, value: str, expires_in: float) -> "AccessToken":
        return cls(value=value, expires_at=time.time() + float(expires_in))

    @classmethod
    def from_jwt(cls, raw: str) -> "AccessToken":
        """
        Read an upstream-issued JWT without verifying it; we only need its
        ``exp`` claim (and whatever else the issuer put in it).
        """
        try:
            claims = jwt.decode(raw, options={"verify_signature": False, "verify_exp": False})
        except jwt.InvalidTokenError as exc:
            raise TokenError(f"Invalid JWT: {exc}") from exc
        exp: Optional[Any] = claims.get("exp")
        if exp is None:
            raise TokenError("JWT has no exp claim")
        return cls(value=raw, expires_at=float(exp), claims=claims)
