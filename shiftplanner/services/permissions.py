"""
Role permission checks backed by the versioned table in the store.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.exceptions import PermissionDeniedError, StaleConfigurationError
from ..domain.models import Employee, Role, coerce_enum
from ..domain.permissions import Permission, RolePermissionTable
from .store import ScheduleStore

logger = logging.getLogger(__name__)


class PermissionService:
    """
    Answers "may this role do that" and edits the role table.

    The table is cached and reloaded whenever the stored version moves, so
    edits made by another process are picked up on the next check. Until a
    table has been stored, ``defaults`` applies.
    """

    def __init__(self, store: ScheduleStore, defaults: Optional[RolePermissionTable] = None):
        self._store = store
        self._defaults = defaults or RolePermissionTable()
        self._cached: Optional[RolePermissionTable] = None

    def current(self, store: Optional[ScheduleStore] = None) -> RolePermissionTable:
        """
        The table in force. Pass ``store`` to read through an open transaction.
        """
        store = store or self._store
        version = store.role_permissions_version()
        if version is None:
            return self._defaults
        if self._cached is None or self._cached.version != version:
            self._cached = store.load_role_permissions() or self._defaults
        return self._cached

    def invalidate(self) -> None:
        self._cached = None

    def has_permission(
        self, role: Role, permission: Permission, store: Optional[ScheduleStore] = None
    ) -> bool:
        return self.current(store).has_permission(role, permission)

    def require(
        self, employee: Employee, permission: Permission, store: Optional[ScheduleStore] = None
    ) -> None:
        """
        Raises:
            PermissionDeniedError: If the employee's role lacks ``permission``
        """
        if not employee.is_active or not self.has_permission(employee.role, permission, store):
            raise PermissionDeniedError(
                f"{employee.full_name} is not allowed to perform {permission.value}"
            )

    def grant(self, role, permission, expected_version: int) -> RolePermissionTable:
        """Grant ``permission`` to ``role``; see ``_edit`` for versioning."""
        return self._edit(role, permission, expected_version, grant=True)

    def revoke(self, role, permission, expected_version: int) -> RolePermissionTable:
        return self._edit(role, permission, expected_version, grant=False)

    def _edit(self, role, permission, expected_version: int, grant: bool) -> RolePermissionTable:
        """
        Apply one grant or revoke against the table at ``expected_version``.

        Raises:
            StaleConfigurationError: If the table changed since the caller read it
        """
        role = coerce_enum(Role, role)
        permission = coerce_enum(Permission, permission)

        with self._store.transaction() as store:
            current = store.load_role_permissions() or self._defaults
            if current.version != expected_version:
                raise StaleConfigurationError(
                    f"Role permissions are at version {current.version}, "
                    f"not {expected_version}; reload and retry"
                )

            updated = current.grant(role, permission) if grant else current.revoke(role, permission)
            if updated is current:
                logger.info(
                    "Role %s already %s %s; nothing to change",
                    role.value,
                    "has" if grant else "lacks",
                    permission.value,
                )
                return current

            store.save_role_permissions(updated, expected_version=expected_version)

        self.invalidate()
        logger.info(
            "%s %s for role %s (version %d)",
            "Granted" if grant else "Revoked",
            permission.value,
            role.value,
            updated.version,
        )
        return updated
