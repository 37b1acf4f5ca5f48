"""
Versioned role -> permission table.

The table is an immutable value: granting or revoking returns a new table
with the next version number. Persisting it is the store's job, and writes
are checked against the version they were derived from.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping

from .models import Role, coerce_enum


class Permission(str, Enum):
    PLANNING_READ = "PLANNING_READ"
    PLANNING_CREATE = "PLANNING_CREATE"
    PLANNING_UPDATE = "PLANNING_UPDATE"
    PLANNING_DELETE = "PLANNING_DELETE"
    PLANNING_PUBLISH = "PLANNING_PUBLISH"
    PLANNING_OVERRIDE = "PLANNING_OVERRIDE"
    LEAVE_REQUEST = "LEAVE_REQUEST"
    LEAVE_APPROVE = "LEAVE_APPROVE"
    LEAVE_MANAGE_TYPES = "LEAVE_MANAGE_TYPES"
    LEAVE_VIEW_TEAM = "LEAVE_VIEW_TEAM"
    EMPLOYEE_READ = "EMPLOYEE_READ"
    EMPLOYEE_EDIT = "EMPLOYEE_EDIT"
    EMPLOYEE_MANAGE_CONTRACTS = "EMPLOYEE_MANAGE_CONTRACTS"
    EMPLOYEE_MANAGE_SKILLS = "EMPLOYEE_MANAGE_SKILLS"
    TEAM_ASSIGN = "TEAM_ASSIGN"
    TEAM_MANAGE = "TEAM_MANAGE"
    TEAM_VIEW_STATS = "TEAM_VIEW_STATS"
    CONFIG_UPDATE = "CONFIG_UPDATE"
    ROLE_MANAGE = "ROLE_MANAGE"
    PERMISSION_MANAGE = "PERMISSION_MANAGE"
    SYSTEM_BACKUP = "SYSTEM_BACKUP"
    ALL_ACCESS = "ALL_ACCESS"


DEFAULT_ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.EMPLOYEE: frozenset({Permission.PLANNING_READ, Permission.LEAVE_REQUEST}),
    Role.MANAGER: frozenset(
        {
            Permission.PLANNING_READ,
            Permission.PLANNING_CREATE,
            Permission.LEAVE_REQUEST,
            Permission.LEAVE_APPROVE,
            Permission.LEAVE_VIEW_TEAM,
            Permission.EMPLOYEE_READ,
            Permission.TEAM_VIEW_STATS,
        }
    ),
    Role.ADMIN: frozenset({Permission.ALL_ACCESS}),
}


@dataclass(frozen=True)
class RolePermissionTable:
    version: int = 1
    grants: Mapping[Role, FrozenSet[Permission]] = field(
        default_factory=lambda: dict(DEFAULT_ROLE_PERMISSIONS)
    )

    def permissions_for(self, role: Role) -> FrozenSet[Permission]:
        return self.grants.get(role, frozenset())

    def has_permission(self, role: Role, permission: Permission) -> bool:
        granted = self.permissions_for(role)
        return Permission.ALL_ACCESS in granted or permission in granted

    def grant(self, role: Role, permission: Permission) -> "RolePermissionTable":
        """
        Return a table granting ``permission`` to ``role``.

        Roles holding ALL_ACCESS are left untouched, as are grants that
        already exist; both return ``self``.
        """
        granted = self.permissions_for(role)
        if Permission.ALL_ACCESS in granted or permission in granted:
            return self
        return self._with(role, granted | {permission})

    def revoke(self, role: Role, permission: Permission) -> "RolePermissionTable":
        granted = self.permissions_for(role)
        if permission not in granted:
            return self
        return self._with(role, granted - {permission})

    def _with(self, role: Role, permissions: FrozenSet[Permission]) -> "RolePermissionTable":
        grants = dict(self.grants)
        grants[role] = frozenset(permissions)
        return RolePermissionTable(version=self.version + 1, grants=grants)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "grants": {
                role.value: sorted(p.value for p in permissions)
                for role, permissions in self.grants.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RolePermissionTable":
        return cls(
            version=int(data.get("version", 1)),
            grants=build_grants(data.get("grants", {})),
        )


def build_grants(raw: Mapping[str, Iterable[str]]) -> Dict[Role, FrozenSet[Permission]]:
    """Parse a role -> permission list mapping, accepting names or values."""
    return {
        coerce_enum(Role, role): frozenset(coerce_enum(Permission, p) for p in permissions)
        for role, permissions in raw.items()
    }
