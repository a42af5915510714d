"""MemberUpdateRequest - proposed field-level changes to an existing member."""
from extensions import db
from utils.db_helpers import utcnow, isoformat, load_json

REQUEST_PENDING = 'PENDING'
REQUEST_APPROVED = 'APPROVED'
REQUEST_PARTIALLY_APPROVED = 'PARTIALLY_APPROVED'
REQUEST_REJECTED = 'REJECTED'

# The only member fields a non-admin may propose changes to
ALLOWED_UPDATE_FIELDS = (
    'birthYear',
    'deathYear',
    'phone',
    'email',
    'city',
    'photoUrl',
    'biography',
    'occupation',
    'status',  # Living / Deceased
)


class MemberUpdateRequest(db.Model):
    __tablename__ = 'member_update_requests'

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.String(20), nullable=False, index=True)
    member_name = db.Column(db.String(255))

    submitted_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    submitted_by_name = db.Column(db.String(150))
    submitted_by_email = db.Column(db.String(120))

    # JSON object restricted to ALLOWED_UPDATE_FIELDS at submission time
    proposed_changes = db.Column(db.Text, nullable=False, default='{}')
    proposed_photo_data = db.Column(db.Text)
    message = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default=REQUEST_PENDING, index=True)
    reviewed_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    reviewed_by_name = db.Column(db.String(150))
    reviewed_at = db.Column(db.DateTime)
    review_notes = db.Column(db.Text)
    approved_fields = db.Column(db.Text)  # JSON list, partial approvals only

    ip_address = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def get_proposed_changes(self):
        return load_json(self.proposed_changes, {})

    def to_dict(self):
        return {
            'id': self.id,
            'memberId': self.member_id,
            'memberName': self.member_name,
            'submittedById': self.submitted_by_id,
            'submittedByName': self.submitted_by_name,
            'submittedByEmail': self.submitted_by_email,
            'proposedChanges': self.get_proposed_changes(),
            'hasPhoto': bool(self.proposed_photo_data),
            'message': self.message,
            'status': self.status,
            'reviewedById': self.reviewed_by_id,
            'reviewedByName': self.reviewed_by_name,
            'reviewedAt': isoformat(self.reviewed_at),
            'reviewNotes': self.review_notes,
            'approvedFields': load_json(self.approved_fields),
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<MemberUpdateRequest {self.id} member={self.member_id} {self.status}>'
