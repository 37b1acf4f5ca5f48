"""
Tests for the role permission table and the permission service.
"""

import pytest

from shiftplanner.domain.exceptions import PermissionDeniedError, StaleConfigurationError
from shiftplanner.domain.models import Role
from shiftplanner.domain.permissions import Permission, RolePermissionTable
from shiftplanner.services.permissions import PermissionService


class TestRolePermissionTable:
    def test_defaults(self):
        table = RolePermissionTable()

        assert table.has_permission(Role.EMPLOYEE, Permission.LEAVE_REQUEST)
        assert not table.has_permission(Role.EMPLOYEE, Permission.LEAVE_APPROVE)
        assert table.has_permission(Role.MANAGER, Permission.LEAVE_APPROVE)

    def test_all_access_implies_everything(self):
        table = RolePermissionTable()

        assert table.has_permission(Role.ADMIN, Permission.SYSTEM_BACKUP)

    def test_grant_returns_new_version(self):
        table = RolePermissionTable()

        updated = table.grant(Role.EMPLOYEE, Permission.TEAM_VIEW_STATS)

        assert updated.version == table.version + 1
        assert updated.has_permission(Role.EMPLOYEE, Permission.TEAM_VIEW_STATS)
        assert not table.has_permission(Role.EMPLOYEE, Permission.TEAM_VIEW_STATS)

    def test_grant_to_all_access_role_is_a_no_op(self):
        table = RolePermissionTable()

        assert table.grant(Role.ADMIN, Permission.LEAVE_APPROVE) is table

    def test_revoke_missing_permission_is_a_no_op(self):
        table = RolePermissionTable()

        assert table.revoke(Role.EMPLOYEE, Permission.CONFIG_UPDATE) is table

    def test_dict_round_trip(self):
        table = RolePermissionTable().grant(Role.EMPLOYEE, Permission.EMPLOYEE_READ)

        assert RolePermissionTable.from_dict(table.to_dict()) == table


class TestPermissionService:
    def test_uses_defaults_until_a_table_is_stored(self, store):
        service = PermissionService(store)

        assert service.current().version == 1
        assert store.load_role_permissions() is None

    def test_grant_persists_and_bumps_version(self, store):
        service = PermissionService(store)

        table = service.grant("EMPLOYE_BASE", "TEAM_VIEW_STATS", expected_version=1)

        assert table.version == 2
        assert store.role_permissions_version() == 2
        assert service.has_permission(Role.EMPLOYEE, Permission.TEAM_VIEW_STATS)

    def test_stale_version_is_rejected(self, store):
        service = PermissionService(store)
        service.grant(Role.EMPLOYEE, Permission.TEAM_VIEW_STATS, expected_version=1)

        with pytest.raises(StaleConfigurationError):
            service.revoke(Role.EMPLOYEE, Permission.TEAM_VIEW_STATS, expected_version=1)

    def test_picks_up_changes_made_elsewhere(self, store):
        reader = PermissionService(store)
        writer = PermissionService(store)
        assert not reader.has_permission(Role.EMPLOYEE, Permission.EMPLOYEE_READ)

        writer.grant(Role.EMPLOYEE, Permission.EMPLOYEE_READ, expected_version=1)

        assert reader.has_permission(Role.EMPLOYEE, Permission.EMPLOYEE_READ)

    def test_require_rejects_missing_permission(self, store):
        service = PermissionService(store)

        with pytest.raises(PermissionDeniedError):
            service.require(store.get_employee("emp-1"), Permission.LEAVE_APPROVE)

        service.require(store.get_employee("mgr-1"), Permission.LEAVE_APPROVE)
