"""
Tests for the role -> capability table and branch scoping.
"""
from types import SimpleNamespace

import pytest

from utils.permissions import (
    Permission, Role, assignable_roles, can_act_on_branch, has_permission,
    permission_flags, to_role,
)


def _user(role, branch=None):
    return SimpleNamespace(role=role, assigned_branch=branch)


# ---------------------------------------------------------------------------
# Role table
# ---------------------------------------------------------------------------

class TestRolePermissions:
    def test_super_admin_holds_every_capability(self):
        assert all(has_permission(Role.SUPER_ADMIN, p) for p in Permission)

    @pytest.mark.parametrize('permission', [
        Permission.RESTORE_SNAPSHOT, Permission.DELETE_MEMBER, Permission.IMPORT_DATA,
    ])
    def test_admin_cannot_do_super_admin_only_things(self, permission):
        assert has_permission(Role.ADMIN, permission) is False

    def test_admin_can_snapshot_and_audit(self):
        assert has_permission(Role.ADMIN, Permission.CREATE_SNAPSHOT)
        assert has_permission(Role.ADMIN, Permission.VIEW_AUDIT_LOGS)
        assert has_permission(Role.ADMIN, Permission.CHANGE_USER_ROLES)

    def test_branch_leader_reviews_but_cannot_snapshot(self):
        assert has_permission(Role.BRANCH_LEADER, Permission.APPROVE_PENDING_MEMBERS)
        assert has_permission(Role.BRANCH_LEADER, Permission.MANAGE_BRANCH_LINKS)
        assert has_permission(Role.BRANCH_LEADER, Permission.CREATE_SNAPSHOT) is False
        assert has_permission(Role.BRANCH_LEADER, Permission.VIEW_USERS) is False

    def test_member_can_only_view_and_suggest(self):
        assert has_permission(Role.MEMBER, Permission.SUGGEST_EDIT)
        assert has_permission(Role.MEMBER, Permission.VIEW_MEMBER_PROFILES)
        assert has_permission(Role.MEMBER, Permission.ADD_MEMBER) is False
        assert has_permission(Role.MEMBER, Permission.APPROVE_PENDING_MEMBERS) is False

    def test_guest_only_views_tree(self):
        flags = permission_flags(Role.GUEST)
        assert flags['view_family_tree'] is True
        assert sum(flags.values()) == 1

    def test_string_roles_accepted(self):
        assert has_permission('ADMIN', 'create_snapshot') is True

    def test_unknown_role_is_guest(self):
        assert to_role('WIZARD') == Role.GUEST
        assert has_permission('WIZARD', Permission.SUGGEST_EDIT) is False

    def test_flags_cover_every_capability(self):
        assert set(permission_flags('MEMBER')) == {p.value for p in Permission}


# ---------------------------------------------------------------------------
# Branch scoping
# ---------------------------------------------------------------------------

class TestBranchScope:
    def test_leader_inside_own_branch(self):
        leader = _user('BRANCH_LEADER', 'Fahad')
        assert can_act_on_branch(leader, Permission.APPROVE_PENDING_MEMBERS, 'Fahad') is True

    def test_leader_outside_own_branch(self):
        leader = _user('BRANCH_LEADER', 'Fahad')
        assert can_act_on_branch(leader, Permission.APPROVE_PENDING_MEMBERS, 'Saleh') is False

    def test_leader_without_branch_cannot_act(self):
        leader = _user('BRANCH_LEADER')
        assert can_act_on_branch(leader, Permission.ADD_MEMBER, None) is False

    def test_admin_acts_on_any_branch(self):
        assert can_act_on_branch(_user('ADMIN'), Permission.APPROVE_PENDING_MEMBERS, 'Saleh') is True

    def test_member_lacks_capability(self):
        assert can_act_on_branch(_user('MEMBER', 'Fahad'), Permission.ADD_MEMBER, 'Fahad') is False


class TestAssignableRoles:
    def test_super_admin_assigns_all(self):
        assert set(assignable_roles('SUPER_ADMIN')) == set(Role)

    def test_admin_cannot_create_super_admins(self):
        assert Role.SUPER_ADMIN not in assignable_roles('ADMIN')

    def test_leader_invites_members_only(self):
        assert assignable_roles('BRANCH_LEADER') == [Role.MEMBER]

    def test_member_assigns_nothing(self):
        assert assignable_roles('MEMBER') == []
