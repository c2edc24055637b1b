# artmeta/access.py
"""
Permission gate for registry mutations.

Role membership is managed elsewhere; the registry only asks
"does this identity hold the role?" through an injected AccessControl.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Mapping

from .errors import AuthorizationError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


class AccessControl(ABC):
    """Answers role membership questions for caller identities."""

    @abstractmethod
    def has_role(self, role: str, identity: str) -> bool:
        pass


class RoleTable(AccessControl):
    """
    Read-only role table.

    File format (roles.json):
        {"roles": {"admin": ["alice", "bob"]}}
    """

    def __init__(self, roles: Mapping[str, Iterable[str]] = None):
        self._roles: Dict[str, FrozenSet[str]] = {
            role: frozenset(members) for role, members in (roles or {}).items()
        }

    @classmethod
    def from_file(cls, path: Path | str) -> "RoleTable":
        """Load a role table from JSON."""
        with open(path) as f:
            data = json.load(f)
        return cls(data.get("roles", {}))

    def has_role(self, role: str, identity: str) -> bool:
        return identity in self._roles.get(role, frozenset())

    def members(self, role: str) -> FrozenSet[str]:
        return self._roles.get(role, frozenset())


def require_admin(access: AccessControl, caller: str) -> None:
    """
    Raise AuthorizationError unless the caller is an administrator.

    Args:
        access: The access-control collaborator
        caller: Calling identity
    """
    if not access.has_role(ADMIN_ROLE, caller):
        logger.warning(f"Rejected mutation from {caller!r}: not an administrator")
        raise AuthorizationError(caller, ADMIN_ROLE)
