"""
Auth Service
============
Login, bearer-token sessions, invitations, password resets and role changes.

Sessions
--------
Login issues a random token stored in ``sessions``; ``load_user_from_request``
(registered as the Flask-Login request loader) maps ``Authorization: Bearer``
back to the user on every request.  Expired sessions and users that are not
ACTIVE resolve to anonymous.
"""
import secrets

from flask import current_app

from extensions import db
from models.invites import Invite, INVITE_PENDING, INVITE_ACCEPTED
from models.users import User, Session, USER_ACTIVE, USER_STATUSES
from services.email_service import EmailService
from utils.audit import log_activity, CATEGORY_AUTH, CATEGORY_USER
from utils.db_helpers import get_or_404, utcnow
from utils.errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from utils.permissions import Role, Permission, assignable_roles, to_role, require_branch_access


def bearer_token(request):
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    return header[len('Bearer '):].strip() or None


def load_user_from_request(request):
    """Flask-Login request loader."""
    token = bearer_token(request)
    if not token:
        return None
    session = Session.query.filter_by(token=token).first()
    if session is None or session.is_expired():
        return None
    user = session.user
    if user is None or user.status != USER_ACTIVE:
        return None
    return user


class AuthService:

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    @staticmethod
    def login(email, password, remember_me=False, ip_address=None, user_agent=None):
        """Return a new Session or raise AuthenticationError."""
        user = User.query.filter_by(email=email.strip().lower()).first()

        if user is None:
            # Generic error to prevent user enumeration
            raise AuthenticationError('Invalid email or password', 'البريد الإلكتروني أو كلمة المرور غير صحيحة')

        if user.is_locked():
            minutes_left = int((user.locked_until - utcnow()).total_seconds() / 60) + 1
            raise AuthenticationError(
                f'Account temporarily locked. Try again in {minutes_left} minutes.',
                f'الحساب مقفل مؤقتاً. حاول مرة أخرى بعد {minutes_left} دقيقة.',
            )

        if not user.check_password(password):
            user.record_failed_login()
            log_activity('LOGIN_FAILED', CATEGORY_AUTH, f'Failed login for {user.email}',
                         target_type='USER', target_id=user.id, user=user, success=False)
            db.session.commit()
            raise AuthenticationError('Invalid email or password', 'البريد الإلكتروني أو كلمة المرور غير صحيحة')

        if user.status != USER_ACTIVE:
            raise AuthenticationError('This account is not active', 'هذا الحساب غير مفعل')

        user.reset_failed_logins()
        session = Session.issue(user, remember_me, ip_address, user_agent)
        db.session.add(session)
        log_activity('LOGIN', CATEGORY_AUTH, f'{user.email} logged in',
                     target_type='USER', target_id=user.id, user=user)
        db.session.commit()
        current_app.logger.info(f'User {user.id} logged in')
        return session

    @staticmethod
    def logout(token, user):
        Session.query.filter_by(token=token).delete()
        log_activity('LOGOUT', CATEGORY_AUTH, f'{user.email} logged out',
                     target_type='USER', target_id=user.id, user=user)
        db.session.commit()

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    @staticmethod
    def request_password_reset(email):
        """Issue a reset token if the account exists; silent otherwise."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if user is None or user.status != USER_ACTIVE:
            current_app.logger.info('Password reset requested for unknown or inactive account')
            return None
        user.reset_token = secrets.token_urlsafe(32)
        user.reset_token_expires = utcnow() + current_app.config['PASSWORD_RESET_EXPIRY']
        log_activity('PASSWORD_RESET_REQUESTED', CATEGORY_AUTH, f'Password reset requested for {user.email}',
                     target_type='USER', target_id=user.id, user=user)
        db.session.commit()
        EmailService.send_password_reset(user, user.reset_token)
        return user

    @staticmethod
    def reset_password(token, new_password):
        """Set a new password and end every session of the user."""
        user = User.query.filter_by(reset_token=token).first() if token else None
        if user is None or not user.reset_token_expires or user.reset_token_expires < utcnow():
            raise ValidationError('Invalid or expired reset token', 'رمز إعادة التعيين غير صالح أو منتهي')

        user.set_password(new_password)
        user.reset_token = None
        user.reset_token_expires = None
        user.failed_login_attempts = 0
        user.locked_until = None
        removed = Session.query.filter_by(user_id=user.id).delete()
        log_activity('PASSWORD_RESET', CATEGORY_AUTH, f'Password reset for {user.email}',
                     target_type='USER', target_id=user.id, details={'sessionsRevoked': removed}, user=user)
        db.session.commit()
        current_app.logger.info(f'Password reset for user {user.id}; {removed} session(s) revoked')
        return user

    # ------------------------------------------------------------------
    # Invites
    # ------------------------------------------------------------------

    @staticmethod
    def create_invite(email, role, inviter, branch=None, message=None):
        email = email.strip().lower()
        role = to_role(role)
        if role not in assignable_roles(inviter.role):
            raise AuthorizationError('You cannot invite users with this role', 'لا يمكنك دعوة مستخدم بهذا الدور')

        if to_role(inviter.role) == Role.BRANCH_LEADER:
            branch = branch or inviter.assigned_branch
            require_branch_access(inviter, Permission.INVITE_USERS, branch)

        if User.query.filter_by(email=email).first():
            raise ConflictError('A user with this email already exists', 'يوجد مستخدم بهذا البريد الإلكتروني')
        if Invite.query.filter(Invite.email == email, Invite.status == INVITE_PENDING,
                               Invite.expires_at > utcnow()).first():
            raise ConflictError('An active invite already exists for this email', 'توجد دعوة فعالة لهذا البريد')

        invite = Invite(
            email=email,
            role=role.value,
            branch=branch,
            message=message,
            sent_by_id=inviter.id,
            expires_at=utcnow() + current_app.config['INVITE_EXPIRY'],
        )
        db.session.add(invite)
        db.session.flush()
        log_activity('CREATE_INVITE', CATEGORY_USER, f'Invited {email} as {role.value}',
                     target_type='INVITE', target_id=invite.id, target_name=email,
                     details={'role': role.value, 'branch': branch}, user=inviter)
        db.session.commit()
        EmailService.send_invite(invite)
        return invite

    @staticmethod
    def get_usable_invite(code):
        invite = Invite.query.filter_by(code=code).first() if code else None
        if invite is None or not invite.is_usable():
            raise ValidationError('Invalid or expired invite', 'الدعوة غير صالحة أو منتهية')
        return invite

    @staticmethod
    def accept_invite(code, password, name_arabic, name_english=None, phone=None):
        invite = AuthService.get_usable_invite(code)
        if User.query.filter_by(email=invite.email).first():
            raise ConflictError('A user with this email already exists', 'يوجد مستخدم بهذا البريد الإلكتروني')

        user = User(
            email=invite.email,
            name_arabic=name_arabic,
            name_english=name_english,
            phone=phone,
            role=invite.role,
            status=USER_ACTIVE,
            assigned_branch=invite.branch if invite.role == Role.BRANCH_LEADER.value else None,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.flush()

        invite.status = INVITE_ACCEPTED
        invite.accepted_at = utcnow()
        invite.accepted_user_id = user.id
        log_activity('ACCEPT_INVITE', CATEGORY_USER, f'{user.email} accepted an invite',
                     target_type='USER', target_id=user.id, target_name=user.email, user=user)
        db.session.commit()
        current_app.logger.info(f'Invite {invite.id} accepted; user {user.id} created as {user.role}')
        return user

    # ------------------------------------------------------------------
    # User administration
    # ------------------------------------------------------------------

    @staticmethod
    def update_user(user_id, changes, actor):
        """Change a user's role / status / branch within the actor's authority."""
        target = get_or_404(User, user_id, 'User', 'المستخدم غير موجود')
        allowed = assignable_roles(actor.role)

        if target.id == actor.id and 'role' in changes:
            raise AuthorizationError('You cannot change your own role', 'لا يمكنك تغيير دورك')
        if to_role(target.role) not in allowed:
            raise AuthorizationError('You cannot modify this user', 'لا يمكنك تعديل هذا المستخدم')

        if 'role' in changes:
            new_role = to_role(changes['role'])
            if new_role.value != changes['role'] or new_role not in allowed:
                raise AuthorizationError('You cannot assign this role', 'لا يمكنك إسناد هذا الدور')
            target.role = new_role.value
        if 'status' in changes:
            if changes['status'] not in USER_STATUSES:
                raise ValidationError('Invalid status', 'الحالة غير صالحة',
                                      field_errors={'status': f'Must be one of {", ".join(USER_STATUSES)}'})
            target.status = changes['status']
            if target.status != USER_ACTIVE:
                Session.query.filter_by(user_id=target.id).delete()
        if 'assignedBranch' in changes:
            target.assigned_branch = changes['assignedBranch'] or None

        log_activity('UPDATE_USER', CATEGORY_USER, f'Updated user {target.email}',
                     target_type='USER', target_id=target.id, target_name=target.email,
                     details=changes, user=actor)
        db.session.commit()
        return target
