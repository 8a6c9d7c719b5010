"""
Admin authorization policy.

Admin access is a capability check against configuration, never a literal
identity baked into code:
- the caller's user id is in ADMIN_USER_IDS, or
- the caller's email (from the token or the stored user record) is in ADMIN_EMAILS, or
- the session token carries ``role: admin``.

The policy is a FastAPI dependency (``get_admin_policy``) so it can be swapped
with ``app.dependency_overrides`` in tests or other deployments.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from fastapi import Depends

from pomotrack.core.auth import Principal, get_current_principal
from pomotrack.core.config import settings, Settings
from pomotrack.core.errors import PermissionError
from pomotrack.core.logging import log_event


@dataclass(frozen=True)
class AdminPolicy:
    """Allowlist / role-claim capability check."""
    user_ids: FrozenSet[str] = field(default_factory=frozenset)
    emails: FrozenSet[str] = field(default_factory=frozenset)
    admin_role: str = "admin"

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None) -> "AdminPolicy":
        cfg = cfg or settings
        return cls(
            user_ids=frozenset(Settings.split_csv(cfg.ADMIN_USER_IDS)),
            emails=frozenset(e.lower() for e in Settings.split_csv(cfg.ADMIN_EMAILS)),
        )

    def allows(self, principal: Principal, stored_email: Optional[str] = None) -> bool:
        if principal.role and principal.role == self.admin_role:
            return True
        if principal.user_id in self.user_ids:
            return True
        for email in (principal.email, stored_email):
            if email and email.lower() in self.emails:
                return True
        return False


def get_admin_policy() -> AdminPolicy:
    return AdminPolicy.from_settings()


def require_admin(
    principal: Principal = Depends(get_current_principal),
    policy: AdminPolicy = Depends(get_admin_policy),
) -> Principal:
    """
    FastAPI dependency: require an admin caller.

    Usage:
        @router.get("/api/admin/stats")
        def stats(admin: Principal = Depends(require_admin)):
            ...
    """
    stored_email = None
    if principal.email is None and policy.emails:
        from pomotrack.features.users.service import get_user
        user = get_user(principal.user_id)
        stored_email = user.email if user else None

    if not policy.allows(principal, stored_email):
        log_event(
            "warning",
            "admin.denied",
            user_id=principal.user_id,
            error_code="forbidden",
        )
        raise PermissionError("Access denied. Admin only.")
    return principal
