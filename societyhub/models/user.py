from __future__ import annotations

from dataclasses import dataclass, field
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime

# ──────────────────────────────────────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────────────────────────────────────

class UserRole(str, Enum):
    RESIDENT = "resident"
    ADMIN = "admin"
    SECURITY = "security"


# Role tags written by older versions of the app
LEGACY_ROLE_ALIASES: Dict[str, UserRole] = {
    "user": UserRole.RESIDENT,
}


class RoleState(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    SIGNED_OUT = "signed_out"


# ──────────────────────────────────────────────────────────────────────────────
# Identity / profile
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Identity:
    """Signed-in identity as reported by the auth provider."""
    uid: str
    email: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_token(cls, decoded_token: Dict[str, Any]) -> "Identity":
        return cls(
            uid=decoded_token.get("uid") or decoded_token.get("user_id") or decoded_token["sub"],
            email=decoded_token.get("email"),
            claims=dict(decoded_token),
        )


class UserProfile(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None  # resident, admin, security (legacy: user)
    apartment: Optional[str] = None
    wing: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
