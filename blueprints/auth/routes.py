"""
Authentication Routes
Login, logout, invitations and password resets (bearer-token API)
"""
from flask import current_app, request
from flask_login import login_required

from . import auth_bp
from .forms import LoginForm, InviteForm, AcceptInviteForm, ForgotPasswordForm, ResetPasswordForm
from extensions import limiter
from models.invites import Invite
from services.auth_service import AuthService, bearer_token
from utils.db_helpers import isoformat
from utils.forms import validate_json
from utils.permissions import (
    Permission, Role, get_current_user, permission_flags, require_permission, to_role,
)
from utils.responses import json_success, client_info


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config['RATELIMIT_LOGIN'])
def login():
    form = validate_json(LoginForm)
    ip_address, user_agent = client_info()
    session = AuthService.login(form.email.data, form.password.data, form.rememberMe.data,
                                ip_address, user_agent)
    return json_success(
        'Logged in', 'تم تسجيل الدخول',
        token=session.token,
        expiresAt=isoformat(session.expires_at),
        user=session.user.to_dict(),
    )


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    AuthService.logout(bearer_token(request), get_current_user())
    return json_success('Logged out', 'تم تسجيل الخروج')


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    user = get_current_user()
    return json_success(user=user.to_dict(), permissions=permission_flags(user.role))


# ── Invitations ───────────────────────────────────────────────────────────────

@auth_bp.route('/invite', methods=['POST'])
@login_required
def create_invite():
    user = require_permission(Permission.INVITE_USERS)
    form = validate_json(InviteForm)
    invite = AuthService.create_invite(form.email.data, form.role.data or Role.MEMBER.value, user,
                                       branch=form.branch.data or None, message=form.message.data or None)
    return json_success('Invitation sent', 'تم إرسال الدعوة', status=201, invite=invite.to_dict())


@auth_bp.route('/invite', methods=['GET'])
def list_or_validate_invites():
    code = request.args.get('code')
    if code:
        # Public: validate an invite before the signup form is shown
        invite = AuthService.get_usable_invite(code)
        return json_success(valid=True, invite={
            'email': invite.email,
            'role': invite.role,
            'branch': invite.branch,
            'expiresAt': isoformat(invite.expires_at),
        })

    user = require_permission(Permission.INVITE_USERS)
    query = Invite.query
    if to_role(user.role) == Role.BRANCH_LEADER:
        query = query.filter(Invite.branch == user.assigned_branch)
    invites = query.order_by(Invite.created_at.desc()).all()
    return json_success(invites=[i.to_dict() for i in invites])


@auth_bp.route('/invite', methods=['PUT'])
@limiter.limit(lambda: current_app.config['RATELIMIT_LOGIN'])
def accept_invite():
    form = validate_json(AcceptInviteForm)
    user = AuthService.accept_invite(form.code.data, form.password.data, form.nameArabic.data,
                                     form.nameEnglish.data or None, form.phone.data or None)
    return json_success('Account created', 'تم إنشاء الحساب', status=201, user=user.to_dict())


# ── Password reset ────────────────────────────────────────────────────────────

@auth_bp.route('/forgot-password', methods=['POST'])
@limiter.limit(lambda: current_app.config['RATELIMIT_LOGIN'])
def forgot_password():
    form = validate_json(ForgotPasswordForm)
    AuthService.request_password_reset(form.email.data)
    # Same answer whether or not the account exists
    return json_success(
        'If the email is registered, a reset link has been sent',
        'إذا كان البريد مسجلاً فقد تم إرسال رابط إعادة التعيين',
    )


@auth_bp.route('/reset-password', methods=['POST'])
@limiter.limit(lambda: current_app.config['RATELIMIT_LOGIN'])
def reset_password():
    form = validate_json(ResetPasswordForm)
    AuthService.reset_password(form.token.data, form.password.data)
    return json_success('Password has been reset', 'تم إعادة تعيين كلمة المرور')
