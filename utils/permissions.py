"""
Role and capability model.

Every user holds exactly one ``Role``.  Each role maps to a fixed set of
``Permission`` capabilities; there is no per-resource ACL and no inheritance
beyond this flat table:

    capability                 GUEST  MEMBER  BRANCH_LEADER  ADMIN  SUPER_ADMIN
    ─────────────────────────  ─────  ──────  ─────────────  ─────  ───────────
    view_family_tree             x      x          x           x        x
    view_member_profiles                x          x           x        x
    suggest_edit                        x          x           x        x
    add_member / edit_member                       x*          x        x
    approve_pending_members                        x*          x        x
    invite_users                                   x*          x        x
    manage_branch_links                            x*          x        x
    create_snapshot                                            x        x
    view_users / view_audit_logs                               x        x
    restore_snapshot                                                    x
    delete_member / import_data                                         x

    (* restricted to the leader's ``assigned_branch``)

Capability checks are derived from the authenticated user on every call;
nothing here caches a decision across requests.
"""
from enum import Enum

from flask_login import current_user

from utils.errors import AuthenticationError, AuthorizationError


class Role(str, Enum):
    SUPER_ADMIN = 'SUPER_ADMIN'
    ADMIN = 'ADMIN'
    BRANCH_LEADER = 'BRANCH_LEADER'
    MEMBER = 'MEMBER'
    GUEST = 'GUEST'


class Permission(str, Enum):
    # Viewing
    VIEW_FAMILY_TREE = 'view_family_tree'
    VIEW_MEMBER_PROFILES = 'view_member_profiles'
    VIEW_MEMBER_CONTACT = 'view_member_contact'
    VIEW_MEMBER_PHOTOS = 'view_member_photos'
    VIEW_ANALYTICS = 'view_analytics'
    VIEW_CHANGE_HISTORY = 'view_change_history'
    # Member management
    ADD_MEMBER = 'add_member'
    EDIT_MEMBER = 'edit_member'
    DELETE_MEMBER = 'delete_member'
    SUGGEST_EDIT = 'suggest_edit'
    APPROVE_PENDING_MEMBERS = 'approve_pending_members'
    # Data operations
    EXPORT_DATA = 'export_data'
    IMPORT_DATA = 'import_data'
    CREATE_SNAPSHOT = 'create_snapshot'
    RESTORE_SNAPSHOT = 'restore_snapshot'
    # User management
    VIEW_USERS = 'view_users'
    INVITE_USERS = 'invite_users'
    APPROVE_ACCESS_REQUESTS = 'approve_access_requests'
    CHANGE_USER_ROLES = 'change_user_roles'
    DISABLE_USERS = 'disable_users'
    # System settings
    MANAGE_SITE_SETTINGS = 'manage_site_settings'
    MANAGE_PRIVACY_SETTINGS = 'manage_privacy_settings'
    MANAGE_PERMISSION_MATRIX = 'manage_permission_matrix'
    VIEW_AUDIT_LOGS = 'view_audit_logs'
    MANAGE_BRANCH_LINKS = 'manage_branch_links'


P = Permission

_MEMBER_PERMISSIONS = frozenset({
    P.VIEW_FAMILY_TREE, P.VIEW_MEMBER_PROFILES, P.VIEW_MEMBER_CONTACT,
    P.VIEW_MEMBER_PHOTOS, P.VIEW_ANALYTICS, P.SUGGEST_EDIT,
})

_BRANCH_LEADER_PERMISSIONS = _MEMBER_PERMISSIONS | {
    P.VIEW_CHANGE_HISTORY, P.ADD_MEMBER, P.EDIT_MEMBER,
    P.APPROVE_PENDING_MEMBERS, P.INVITE_USERS, P.MANAGE_BRANCH_LINKS,
}

_ADMIN_PERMISSIONS = _BRANCH_LEADER_PERMISSIONS | {
    P.EXPORT_DATA, P.CREATE_SNAPSHOT, P.VIEW_USERS,
    P.APPROVE_ACCESS_REQUESTS, P.CHANGE_USER_ROLES, P.VIEW_AUDIT_LOGS,
}

ROLE_PERMISSIONS = {
    Role.GUEST: frozenset({P.VIEW_FAMILY_TREE}),
    Role.MEMBER: _MEMBER_PERMISSIONS,
    Role.BRANCH_LEADER: frozenset(_BRANCH_LEADER_PERMISSIONS),
    Role.ADMIN: frozenset(_ADMIN_PERMISSIONS),
    Role.SUPER_ADMIN: frozenset(Permission),
}

# Capabilities a branch leader may only exercise inside their assigned branch
BRANCH_SCOPED_PERMISSIONS = frozenset({
    P.ADD_MEMBER, P.EDIT_MEMBER, P.APPROVE_PENDING_MEMBERS,
    P.INVITE_USERS, P.MANAGE_BRANCH_LINKS,
})

ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})

ROLE_LABELS = {
    Role.SUPER_ADMIN: {'ar': 'المدير العام', 'en': 'Super Admin'},
    Role.ADMIN: {'ar': 'مدير', 'en': 'Admin'},
    Role.BRANCH_LEADER: {'ar': 'مسؤول الفرع', 'en': 'Branch Leader'},
    Role.MEMBER: {'ar': 'عضو العائلة', 'en': 'Family Member'},
    Role.GUEST: {'ar': 'زائر', 'en': 'Guest'},
}


def to_role(value):
    """Coerce a stored role string to ``Role``; unknown values become GUEST."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return Role.GUEST


def permissions_for_role(role):
    return ROLE_PERMISSIONS[to_role(role)]


def has_permission(role, permission):
    return Permission(permission) in permissions_for_role(role)


def permission_flags(role):
    """``{capability: bool}`` for every capability, as exposed by /api/auth/me."""
    granted = permissions_for_role(role)
    return {p.value: p in granted for p in Permission}


def can_act_on_branch(user, permission, target_branch):
    """True if *user* may exercise *permission* on a record in *target_branch*.

    Admin roles act on any branch.  Branch leaders need an assigned branch
    equal to *target_branch* for branch-scoped capabilities.
    """
    role = to_role(user.role)
    if not has_permission(role, permission):
        return False
    if role == Role.BRANCH_LEADER and Permission(permission) in BRANCH_SCOPED_PERMISSIONS:
        return bool(user.assigned_branch) and user.assigned_branch == target_branch
    return True


def assignable_roles(actor_role):
    """Roles that *actor_role* may hand out to other users."""
    role = to_role(actor_role)
    if role == Role.SUPER_ADMIN:
        return list(Role)
    if role == Role.ADMIN:
        return [Role.ADMIN, Role.BRANCH_LEADER, Role.MEMBER, Role.GUEST]
    if role == Role.BRANCH_LEADER:
        return [Role.MEMBER]
    return []


# ── Request-time guards ───────────────────────────────────────────────────────

def get_current_user():
    """Return the authenticated user or raise ``AuthenticationError``."""
    if not current_user or not current_user.is_authenticated:
        raise AuthenticationError()
    return current_user._get_current_object()


def require_permission(permission, allow_roles=(), message=None, message_ar=None):
    """Return the current user if they hold *permission* or one of *allow_roles*.

    Raises ``AuthenticationError`` / ``AuthorizationError`` otherwise.
    """
    user = get_current_user()
    role = to_role(user.role)
    if has_permission(role, permission) or role in allow_roles:
        return user
    raise AuthorizationError(message, message_ar, required_permission=Permission(permission).value)


def require_role(*roles, message=None, message_ar=None):
    """Return the current user if their role is one of *roles*."""
    user = get_current_user()
    if to_role(user.role) not in roles:
        raise AuthorizationError(message, message_ar)
    return user


def require_branch_access(user, permission, target_branch):
    """Raise ``AuthorizationError`` unless *user* may act on *target_branch*."""
    if not can_act_on_branch(user, permission, target_branch):
        raise AuthorizationError(
            'You can only act within your assigned branch',
            'يمكنك التصرف ضمن فرعك فقط',
            required_permission=Permission(permission).value,
        )
