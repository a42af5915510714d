"""
User and Session models for authentication.

Users authenticate with email + password and receive an opaque bearer token
stored as a ``Session`` row.  Every API request resolves its token back to a
non-expired session whose user is ``ACTIVE``.
"""
import secrets

from flask import current_app
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from extensions import db
from utils.db_helpers import utcnow, isoformat
from utils.permissions import ROLE_LABELS, to_role

USER_PENDING = 'PENDING'
USER_ACTIVE = 'ACTIVE'
USER_DISABLED = 'DISABLED'
USER_STATUSES = (USER_PENDING, USER_ACTIVE, USER_DISABLED)


class User(UserMixin, db.Model):
    """User account"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name_arabic = db.Column(db.String(150), nullable=False)
    name_english = db.Column(db.String(150))
    phone = db.Column(db.String(30))

    role = db.Column(db.String(20), nullable=False, default='MEMBER')
    status = db.Column(db.String(20), nullable=False, default=USER_PENDING)
    # Branch a BRANCH_LEADER is responsible for
    assigned_branch = db.Column(db.String(100))
    linked_member_id = db.Column(db.String(20))

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    last_login = db.Column(db.DateTime)

    # Login security fields
    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    locked_until = db.Column(db.DateTime)

    # Password reset
    reset_token = db.Column(db.String(64), unique=True, index=True)
    reset_token_expires = db.Column(db.DateTime)

    sessions = db.relationship('Session', back_populates='user', cascade='all, delete-orphan')

    @property
    def is_active(self):
        return self.status == USER_ACTIVE

    def set_password(self, password):
        """Hash and set the user's password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if provided password matches the hash"""
        return check_password_hash(self.password_hash, password)

    def is_locked(self):
        """Check if account is locked due to failed login attempts"""
        return bool(self.locked_until and self.locked_until > utcnow())

    def record_failed_login(self):
        """Record a failed login attempt and lock if threshold exceeded"""
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1

        max_attempts = current_app.config.get('MAX_LOGIN_ATTEMPTS', 5)
        lockout_duration = current_app.config.get('LOCKOUT_DURATION')

        if self.failed_login_attempts >= max_attempts and lockout_duration:
            self.locked_until = utcnow() + lockout_duration

        db.session.commit()

    def reset_failed_logins(self):
        """Reset failed login attempts after successful login"""
        self.failed_login_attempts = 0
        self.locked_until = None
        self.last_login = utcnow()
        db.session.commit()

    def to_dict(self):
        role = to_role(self.role)
        return {
            'id': self.id,
            'email': self.email,
            'nameArabic': self.name_arabic,
            'nameEnglish': self.name_english,
            'phone': self.phone,
            'role': role.value,
            'roleLabel': ROLE_LABELS[role],
            'status': self.status,
            'assignedBranch': self.assigned_branch,
            'linkedMemberId': self.linked_member_id,
            'createdAt': isoformat(self.created_at),
            'lastLogin': isoformat(self.last_login),
        }

    def __repr__(self):
        return f'<User {self.email} {self.role}>'


class Session(db.Model):
    """Bearer token issued at login"""
    __tablename__ = 'sessions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    remember_me = db.Column(db.Boolean, default=False, nullable=False)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = db.relationship('User', back_populates='sessions')

    @staticmethod
    def issue(user, remember_me=False, ip_address=None, user_agent=None):
        """Create (unsaved) session for *user* using the configured lifetime."""
        key = 'REMEMBER_ME_DURATION' if remember_me else 'SESSION_DURATION'
        return Session(
            user=user,
            token=secrets.token_hex(32),
            expires_at=utcnow() + current_app.config[key],
            remember_me=remember_me,
            ip_address=ip_address,
            user_agent=(user_agent or '')[:255],
        )

    def is_expired(self):
        return self.expires_at <= utcnow()

    def __repr__(self):
        return f'<Session user={self.user_id} expires={self.expires_at}>'
