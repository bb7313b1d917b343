"""Kernel security – Principal."""
from __future__ import annotations

import dataclasses
from typing import Any


@dataclasses.dataclass(frozen=True)
class Principal:
    """Authenticated identity built from already-verified token claims."""
    subject: str
    claims: dict[str, Any] = dataclasses.field(default_factory=dict)
    roles: frozenset[str] = frozenset()

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Principal":
        roles = claims.get("roles") or ()
        if isinstance(roles, str):
            roles = (roles,)
        return cls(subject=str(claims.get("sub", "")), claims=dict(claims), roles=frozenset(roles))

    def claim(self, claim_type: str) -> str | None:
        """Return a claim as a non-empty string, or ``None``."""
        value = self.claims.get(claim_type)
        if value is None or value == "":
            return None
        return str(value)

    def has_role(self, role: str) -> bool:
        return role in self.roles


__all__ = ["Principal"]
