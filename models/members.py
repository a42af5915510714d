"""
FamilyMember model - one person in the family tree.

Member ids are generation-independent sequence codes: ``P001``, ``P002``...
``father_id`` points at another member (NULL for root members).

The camelCase dictionary produced by ``to_dict()`` is the wire format used by
the JSON API *and* the serialisation stored inside snapshots, so
``from_dict()`` must accept everything ``to_dict()`` emits.
"""
import re

from extensions import db
from utils.db_helpers import utcnow, isoformat

MEMBER_ID_PATTERN = re.compile(r'^P(\d+)$')

GENDERS = ('Male', 'Female')
MEMBER_STATUSES = ('Living', 'Deceased')

# camelCase key -> column attribute
MEMBER_FIELDS = {
    'id': 'id',
    'firstName': 'first_name',
    'fatherName': 'father_name',
    'grandfatherName': 'grandfather_name',
    'greatGrandfatherName': 'great_grandfather_name',
    'familyName': 'family_name',
    'fatherId': 'father_id',
    'gender': 'gender',
    'birthYear': 'birth_year',
    'deathYear': 'death_year',
    'sonsCount': 'sons_count',
    'daughtersCount': 'daughters_count',
    'generation': 'generation',
    'branch': 'branch',
    'fullNameAr': 'full_name_ar',
    'fullNameEn': 'full_name_en',
    'phone': 'phone',
    'city': 'city',
    'status': 'status',
    'photoUrl': 'photo_url',
    'biography': 'biography',
    'occupation': 'occupation',
    'email': 'email',
    'createdBy': 'created_by',
    'lastModifiedBy': 'last_modified_by',
    'version': 'version',
}

INTEGER_FIELDS = {'birthYear', 'deathYear', 'sonsCount', 'daughtersCount', 'generation', 'version'}
REQUIRED_FIELDS = ('id', 'firstName', 'gender', 'generation')
TIMESTAMP_FIELDS = ('createdAt', 'updatedAt')


class FamilyMember(db.Model):
    """A person in the tree."""
    __tablename__ = 'family_members'

    id = db.Column(db.String(20), primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    father_name = db.Column(db.String(100))
    grandfather_name = db.Column(db.String(100))
    great_grandfather_name = db.Column(db.String(100))
    family_name = db.Column(db.String(100), nullable=False, default='آل شايع')

    father_id = db.Column(db.String(20), db.ForeignKey('family_members.id'), nullable=True, index=True)

    gender = db.Column(db.String(10), nullable=False)
    birth_year = db.Column(db.Integer)
    death_year = db.Column(db.Integer)
    sons_count = db.Column(db.Integer, nullable=False, default=0)
    daughters_count = db.Column(db.Integer, nullable=False, default=0)
    generation = db.Column(db.Integer, nullable=False, default=1, index=True)
    branch = db.Column(db.String(100), index=True)

    full_name_ar = db.Column(db.String(255))
    full_name_en = db.Column(db.String(255))

    # Contact / profile
    phone = db.Column(db.String(30))
    city = db.Column(db.String(100))
    status = db.Column(db.String(20), nullable=False, default='Living')
    photo_url = db.Column(db.Text)
    biography = db.Column(db.Text)
    occupation = db.Column(db.String(150))
    email = db.Column(db.String(120))

    # Audit
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    created_by = db.Column(db.String(64))
    last_modified_by = db.Column(db.String(64))
    version = db.Column(db.Integer, nullable=False, default=1)

    @property
    def display_name(self):
        return self.full_name_ar or self.first_name

    def to_dict(self):
        data = {key: getattr(self, attr) for key, attr in MEMBER_FIELDS.items()}
        data['createdAt'] = isoformat(self.created_at)
        data['updatedAt'] = isoformat(self.updated_at)
        return data

    def apply_changes(self, changes):
        """Copy camelCase *changes* onto this row (unknown keys are ignored)."""
        for key, value in changes.items():
            attr = MEMBER_FIELDS.get(key)
            if attr and key != 'id':
                if key == 'status' and value not in MEMBER_STATUSES:
                    raise ValueError(f'invalid status {value!r}')
                setattr(self, attr, _coerce(key, value))
        self.version = (self.version or 0) + 1

    @classmethod
    def from_dict(cls, data):
        """Build an unsaved member from a camelCase dict.

        Raises ``ValueError`` for unknown keys, missing required fields or
        values of the wrong type.
        """
        unknown = sorted(set(data) - set(MEMBER_FIELDS))
        if unknown:
            raise ValueError(f"unknown field(s): {', '.join(unknown)}")
        missing = [key for key in REQUIRED_FIELDS if data.get(key) in (None, '')]
        if missing:
            raise ValueError(f"missing required field(s): {', '.join(missing)}")

        values = {MEMBER_FIELDS[key]: _coerce(key, value) for key, value in data.items()}
        if values['gender'] not in GENDERS:
            raise ValueError(f"invalid gender {values['gender']!r}")
        if values['generation'] < 1:
            raise ValueError('generation must be >= 1')
        for attr in ('family_name', 'version', 'created_by', 'last_modified_by'):
            if values.get(attr) is None:
                values.pop(attr, None)
        values['status'] = values.get('status') or 'Living'
        if values['status'] not in MEMBER_STATUSES:
            raise ValueError(f"invalid status {values['status']!r}")
        values['sons_count'] = values.get('sons_count') or 0
        values['daughters_count'] = values.get('daughters_count') or 0
        return cls(**values)

    @staticmethod
    def next_id():
        """Next sequential member id (``P001`` on an empty tree)."""
        highest = 0
        for (member_id,) in db.session.query(FamilyMember.id).all():
            match = MEMBER_ID_PATTERN.match(member_id or '')
            if match:
                highest = max(highest, int(match.group(1)))
        return f'P{highest + 1:03d}'

    def __repr__(self):
        return f'<FamilyMember {self.id} {self.first_name}>'


def _coerce(key, value):
    if isinstance(value, (dict, list)):
        raise ValueError(f'{key} must be a single value')
    if key in INTEGER_FIELDS and value not in (None, ''):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f'{key} must be an integer') from None
    if key in INTEGER_FIELDS:
        return None
    return value
