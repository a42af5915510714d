"""
Broadcast and BroadcastRecipient models.

A broadcast is an email campaign (meeting invitation, announcement, reminder
or update) addressed to an audience of family members and users.  One
``BroadcastRecipient`` row is kept per delivered email address, carrying the
delivery outcome and any RSVP reply.
"""
from extensions import db
from utils.db_helpers import utcnow, isoformat, load_json

BROADCAST_TYPES = ('MEETING', 'ANNOUNCEMENT', 'REMINDER', 'UPDATE')
BROADCAST_STATUSES = ('DRAFT', 'SCHEDULED', 'SENDING', 'SENT', 'CANCELLED')
TARGET_AUDIENCES = ('ALL', 'BRANCH', 'GENERATION', 'CUSTOM')
RSVP_RESPONSES = ('YES', 'NO', 'MAYBE')

# Broadcasts in these states may still be edited or deleted
EDITABLE_STATUSES = ('DRAFT', 'SCHEDULED')


class Broadcast(db.Model):
    __tablename__ = 'broadcasts'

    id = db.Column(db.Integer, primary_key=True)
    title_ar = db.Column(db.String(255), nullable=False)
    title_en = db.Column(db.String(255))
    content_ar = db.Column(db.Text, nullable=False)
    content_en = db.Column(db.Text)
    type = db.Column(db.String(20), nullable=False, default='ANNOUNCEMENT')

    # Meeting details
    meeting_date = db.Column(db.DateTime)
    meeting_location = db.Column(db.String(255))
    meeting_url = db.Column(db.String(500))
    rsvp_required = db.Column(db.Boolean, nullable=False, default=False)
    rsvp_deadline = db.Column(db.DateTime)

    # Targeting
    target_audience = db.Column(db.String(20), nullable=False, default='ALL')
    target_branch = db.Column(db.String(100))
    target_generation = db.Column(db.Integer)
    target_member_ids = db.Column(db.Text)  # JSON list for CUSTOM audiences

    status = db.Column(db.String(20), nullable=False, default='DRAFT', index=True)
    scheduled_at = db.Column(db.DateTime)
    sent_at = db.Column(db.DateTime)

    # Delivery counters
    total_recipients = db.Column(db.Integer, nullable=False, default=0)
    sent_count = db.Column(db.Integer, nullable=False, default=0)
    failed_count = db.Column(db.Integer, nullable=False, default=0)
    rsvp_yes_count = db.Column(db.Integer, nullable=False, default=0)
    rsvp_no_count = db.Column(db.Integer, nullable=False, default=0)
    rsvp_maybe_count = db.Column(db.Integer, nullable=False, default=0)

    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_by_name = db.Column(db.String(150))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    recipients = db.relationship('BroadcastRecipient', back_populates='broadcast',
                                 cascade='all, delete-orphan', lazy='dynamic')

    @property
    def is_editable(self):
        return self.status in EDITABLE_STATUSES

    def get_target_member_ids(self):
        return load_json(self.target_member_ids, [])

    def to_dict(self):
        return {
            'id': self.id,
            'titleAr': self.title_ar,
            'titleEn': self.title_en,
            'contentAr': self.content_ar,
            'contentEn': self.content_en,
            'type': self.type,
            'meetingDate': isoformat(self.meeting_date),
            'meetingLocation': self.meeting_location,
            'meetingUrl': self.meeting_url,
            'rsvpRequired': self.rsvp_required,
            'rsvpDeadline': isoformat(self.rsvp_deadline),
            'targetAudience': self.target_audience,
            'targetBranch': self.target_branch,
            'targetGeneration': self.target_generation,
            'targetMemberIds': self.get_target_member_ids(),
            'status': self.status,
            'scheduledAt': isoformat(self.scheduled_at),
            'sentAt': isoformat(self.sent_at),
            'totalRecipients': self.total_recipients,
            'sentCount': self.sent_count,
            'failedCount': self.failed_count,
            'rsvpYesCount': self.rsvp_yes_count,
            'rsvpNoCount': self.rsvp_no_count,
            'rsvpMaybeCount': self.rsvp_maybe_count,
            'createdById': self.created_by_id,
            'createdByName': self.created_by_name,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<Broadcast {self.id} {self.type} {self.status}>'


class BroadcastRecipient(db.Model):
    __tablename__ = 'broadcast_recipients'
    __table_args__ = (
        db.UniqueConstraint('broadcast_id', 'email', name='uq_broadcast_recipient_email'),
    )

    id = db.Column(db.Integer, primary_key=True)
    broadcast_id = db.Column(db.Integer, db.ForeignKey('broadcasts.id'), nullable=False, index=True)
    member_id = db.Column(db.String(20))
    member_name = db.Column(db.String(255))
    email = db.Column(db.String(120), nullable=False)

    status = db.Column(db.String(20), nullable=False, default='PENDING')  # PENDING / SENT / FAILED
    sent_at = db.Column(db.DateTime)
    error_message = db.Column(db.Text)

    rsvp_response = db.Column(db.String(10))
    rsvp_responded_at = db.Column(db.DateTime)
    rsvp_note = db.Column(db.Text)

    broadcast = db.relationship('Broadcast', back_populates='recipients')

    def to_dict(self):
        return {
            'id': self.id,
            'memberId': self.member_id,
            'memberName': self.member_name,
            'email': self.email,
            'status': self.status,
            'sentAt': isoformat(self.sent_at),
            'errorMessage': self.error_message,
            'rsvpResponse': self.rsvp_response,
            'rsvpRespondedAt': isoformat(self.rsvp_responded_at),
            'rsvpNote': self.rsvp_note,
        }

    def __repr__(self):
        return f'<BroadcastRecipient {self.email} {self.status}>'
