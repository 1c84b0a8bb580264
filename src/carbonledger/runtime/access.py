# src/carbonledger/runtime/access.py
from __future__ import annotations

"""Role checks shared by every domain.

All authorization goes through `require_role` so an operation states the role
it needs once, before it reads or writes anything else.
"""

from typing import Any, Dict, Optional

from carbonledger.runtime.errors import AuthorizationError, InvalidArgumentError
from carbonledger.runtime.params import ensure_params

Json = Dict[str, Any]

ROLE_ANY = "any"
ROLE_ADMIN = "admin"
ROLE_OWNER = "owner"
ROLE_REGISTRANT = "registrant"

_ROLES = {ROLE_ANY, ROLE_ADMIN, ROLE_OWNER, ROLE_REGISTRANT}


def admin_of(state: Json) -> str:
    return str(ensure_params(state).get("admin") or "").strip()


def is_admin(state: Json, caller: str) -> bool:
    admin = admin_of(state)
    return bool(admin) and str(caller or "").strip() == admin


def require_role(state: Json, caller: str, role: str, *, owner: Optional[str] = None) -> None:
    """Raise AuthorizationError unless `caller` holds `role`.

    Roles:
      - any:        every non-empty identity
      - admin:      the configured administrator
      - owner:      the identity passed as `owner` (e.g. a project's registrant)
      - registrant: admin, or anyone while non-admin registration is enabled
    """
    if role not in _ROLES:
        raise ValueError(f"unknown role: {role!r}")

    who = str(caller or "").strip()
    if not who:
        raise InvalidArgumentError("missing_caller", {"role": role})

    if role == ROLE_ANY:
        return

    if role == ROLE_ADMIN:
        if not is_admin(state, who):
            raise AuthorizationError("admin_required", {"caller": who})
        return

    if role == ROLE_OWNER:
        if owner is None or who != str(owner):
            raise AuthorizationError("owner_required", {"caller": who, "owner": owner})
        return

    # ROLE_REGISTRANT
    if is_admin(state, who):
        return
    if not bool(ensure_params(state).get("allow_non_admin_registration", False)):
        raise AuthorizationError("registration_restricted_to_admin", {"caller": who})


__all__ = [
    "ROLE_ANY",
    "ROLE_ADMIN",
    "ROLE_OWNER",
    "ROLE_REGISTRANT",
    "admin_of",
    "is_admin",
    "require_role",
]
