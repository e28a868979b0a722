"""
roles.py — Role Resolver
========================
Derives the caller's effective role from the session's group claims.

  "Managers"  in groups  → Role.MANAGER
  "Employees" in groups  → Role.EMPLOYEE
  neither                → Role.NONE (access denied)

Manager does not imply Employee: the two are separate portals.  Any error
while fetching or refreshing the session resolves to Role.NONE, never to a
privileged role.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from training_portal.errors import AuthFailure
from training_portal.identity import IdentityProvider
from training_portal.models import EMPLOYEES_GROUP, MANAGERS_GROUP, Role

logger = logging.getLogger(__name__)


def normalize_group_claims(raw: Any) -> frozenset[str]:
    """
    Collapse the raw claim shape into one canonical set.

    absent / unrecognised  → frozenset()
    "Managers"             → frozenset({"Managers"})
    ["Managers", ...]      → frozenset of its string entries
    """
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        return frozenset([raw]) if raw else frozenset()
    if isinstance(raw, Iterable) and not isinstance(raw, (bytes, dict)):
        return frozenset(g for g in raw if isinstance(g, str) and g)
    return frozenset()


def role_from_groups(groups: frozenset[str]) -> Role:
    if MANAGERS_GROUP in groups:
        return Role.MANAGER
    if EMPLOYEES_GROUP in groups:
        return Role.EMPLOYEE
    return Role.NONE


class RoleResolver:
    def __init__(self, identity: IdentityProvider):
        self.identity = identity

    def resolve(self, force_refresh: bool = True) -> Role:
        try:
            session = self.identity.fetch_session(force_refresh=force_refresh)
        except Exception as exc:
            logger.error("Error checking user groups: %s", exc)
            return Role.NONE
        role = role_from_groups(normalize_group_claims(session.group_claims))
        logger.debug("Resolved %s → %s", session.username, role.value)
        return role


def require_role(role: Role, *allowed: Role) -> None:
    """Raise AuthFailure unless ``role`` is one of ``allowed``."""
    if role not in allowed:
        names = ", ".join(r.value for r in allowed)
        raise AuthFailure(f"Access denied: requires {names}, caller is {role.value}")
