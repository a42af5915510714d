"""
Invite and BranchEntryLink models.

Invites let an admin or branch leader bring a new user in with a pre-set
role.  Branch entry links are shareable tokens that let anyone propose a new
member under a fixed branch head without logging in; every submission made
through a link still lands in the pending queue.
"""
import secrets

from extensions import db
from utils.db_helpers import utcnow, isoformat

INVITE_PENDING = 'PENDING'
INVITE_ACCEPTED = 'ACCEPTED'
INVITE_EXPIRED = 'EXPIRED'


class Invite(db.Model):
    __tablename__ = 'invites'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True,
                     default=lambda: secrets.token_urlsafe(24))
    email = db.Column(db.String(120), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default='MEMBER')
    branch = db.Column(db.String(100))
    message = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default=INVITE_PENDING)

    sent_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    accepted_at = db.Column(db.DateTime)
    accepted_user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def is_usable(self):
        return self.status == INVITE_PENDING and self.expires_at > utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'email': self.email,
            'role': self.role,
            'branch': self.branch,
            'message': self.message,
            'status': self.status,
            'sentById': self.sent_by_id,
            'expiresAt': isoformat(self.expires_at),
            'acceptedAt': isoformat(self.accepted_at),
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<Invite {self.email} {self.status}>'


class BranchEntryLink(db.Model):
    __tablename__ = 'branch_entry_links'

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True,
                      default=lambda: secrets.token_urlsafe(16))
    branch_head_id = db.Column(db.String(20), nullable=False, index=True)
    branch_head_name = db.Column(db.String(255))
    branch = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    use_count = db.Column(db.Integer, nullable=False, default=0)
    expires_at = db.Column(db.DateTime)
    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def is_usable(self):
        if not self.is_active:
            return False
        return self.expires_at is None or self.expires_at > utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'token': self.token,
            'branchHeadId': self.branch_head_id,
            'branchHeadName': self.branch_head_name,
            'branch': self.branch,
            'isActive': self.is_active,
            'useCount': self.use_count,
            'expiresAt': isoformat(self.expires_at),
            'createdById': self.created_by_id,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<BranchEntryLink {self.branch_head_id} active={self.is_active}>'
