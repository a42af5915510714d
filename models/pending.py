"""
PendingMember - a proposed FamilyMember awaiting admin review.

A pending record makes exactly one terminal transition
(PENDING -> APPROVED or PENDING -> REJECTED) and is immutable afterwards.
"""
from extensions import db
from utils.db_helpers import utcnow, isoformat

REVIEW_PENDING = 'PENDING'
REVIEW_APPROVED = 'APPROVED'
REVIEW_REJECTED = 'REJECTED'
REVIEW_STATUSES = (REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED)


class PendingMember(db.Model):
    __tablename__ = 'pending_members'

    id = db.Column(db.Integer, primary_key=True)

    # Proposed member fields (mirror FamilyMember)
    first_name = db.Column(db.String(100), nullable=False)
    father_name = db.Column(db.String(100))
    grandfather_name = db.Column(db.String(100))
    great_grandfather_name = db.Column(db.String(100))
    family_name = db.Column(db.String(100), nullable=False, default='آل شايع')
    proposed_father_id = db.Column(db.String(20))
    gender = db.Column(db.String(10), nullable=False)
    birth_year = db.Column(db.Integer)
    generation = db.Column(db.Integer, nullable=False, default=1)
    branch = db.Column(db.String(100), index=True)
    full_name_ar = db.Column(db.String(255))
    full_name_en = db.Column(db.String(255))
    phone = db.Column(db.String(30))
    city = db.Column(db.String(100))
    status = db.Column(db.String(20))
    occupation = db.Column(db.String(150))
    email = db.Column(db.String(120))

    # Submission
    submitted_via = db.Column(db.String(64))  # branch link token, if any
    submitted_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    submitted_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    ip_address = db.Column(db.String(64))

    # Review
    review_status = db.Column(db.String(20), nullable=False, default=REVIEW_PENDING, index=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    reviewed_at = db.Column(db.DateTime)
    review_note = db.Column(db.Text)
    approved_member_id = db.Column(db.String(20))

    @property
    def display_name(self):
        return self.full_name_ar or self.first_name

    def member_values(self):
        """Column values for the FamilyMember this record would become."""
        return {
            'first_name': self.first_name,
            'father_name': self.father_name,
            'grandfather_name': self.grandfather_name,
            'great_grandfather_name': self.great_grandfather_name,
            'family_name': self.family_name or 'آل شايع',
            'father_id': self.proposed_father_id,
            'gender': self.gender,
            'birth_year': self.birth_year,
            'generation': self.generation,
            'branch': self.branch,
            'full_name_ar': self.full_name_ar,
            'full_name_en': self.full_name_en,
            'phone': self.phone,
            'city': self.city,
            'status': self.status or 'Living',
            'occupation': self.occupation,
            'email': self.email,
            'sons_count': 0,
            'daughters_count': 0,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'firstName': self.first_name,
            'fatherName': self.father_name,
            'grandfatherName': self.grandfather_name,
            'greatGrandfatherName': self.great_grandfather_name,
            'familyName': self.family_name,
            'proposedFatherId': self.proposed_father_id,
            'gender': self.gender,
            'birthYear': self.birth_year,
            'generation': self.generation,
            'branch': self.branch,
            'fullNameAr': self.full_name_ar,
            'fullNameEn': self.full_name_en,
            'phone': self.phone,
            'city': self.city,
            'status': self.status,
            'occupation': self.occupation,
            'email': self.email,
            'submittedVia': self.submitted_via,
            'submittedAt': isoformat(self.submitted_at),
            'reviewStatus': self.review_status,
            'reviewedBy': self.reviewed_by,
            'reviewedAt': isoformat(self.reviewed_at),
            'reviewNote': self.review_note,
            'approvedMemberId': self.approved_member_id,
        }

    def __repr__(self):
        return f'<PendingMember {self.id} {self.first_name} {self.review_status}>'
