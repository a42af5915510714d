"""Pending member submission, review and branch link bodies"""
from wtforms import StringField, IntegerField
from wtforms.validators import AnyOf, DataRequired, Email, Length, NumberRange, Optional

from models.members import GENDERS, MEMBER_STATUSES
from services.approval_service import REVIEW_ACTIONS
from utils.forms import ApiForm

# JSON key -> PendingMember column
PENDING_COLUMNS = {
    'firstName': 'first_name',
    'fatherName': 'father_name',
    'grandfatherName': 'grandfather_name',
    'greatGrandfatherName': 'great_grandfather_name',
    'familyName': 'family_name',
    'fatherId': 'proposed_father_id',
    'gender': 'gender',
    'birthYear': 'birth_year',
    'generation': 'generation',
    'branch': 'branch',
    'fullNameAr': 'full_name_ar',
    'fullNameEn': 'full_name_en',
    'phone': 'phone',
    'city': 'city',
    'status': 'status',
    'occupation': 'occupation',
    'email': 'email',
}


class PendingMemberForm(ApiForm):
    firstName = StringField('First Name', validators=[
        DataRequired(message='First name is required'),
        Length(max=100)
    ])
    fatherName = StringField('Father Name', validators=[Optional(), Length(max=100)])
    grandfatherName = StringField('Grandfather Name', validators=[Optional(), Length(max=100)])
    greatGrandfatherName = StringField('Great-grandfather Name', validators=[Optional(), Length(max=100)])
    familyName = StringField('Family Name', validators=[Optional(), Length(max=100)])
    fatherId = StringField('Father', validators=[Optional(), Length(max=20)])
    gender = StringField('Gender', validators=[
        DataRequired(message='Gender is required'),
        AnyOf(GENDERS, message='Gender must be Male or Female')
    ])
    birthYear = IntegerField('Birth Year', validators=[Optional(), NumberRange(min=1000, max=2200)])
    generation = IntegerField('Generation', validators=[
        Optional(),
        NumberRange(min=1, message='Generation must be at least 1')
    ])
    branch = StringField('Branch', validators=[Optional(), Length(max=100)])
    fullNameAr = StringField('Full Name (Arabic)', validators=[Optional(), Length(max=255)])
    fullNameEn = StringField('Full Name (English)', validators=[Optional(), Length(max=255)])
    phone = StringField('Phone', validators=[Optional(), Length(max=30)])
    city = StringField('City', validators=[Optional(), Length(max=100)])
    status = StringField('Status', validators=[
        Optional(),
        AnyOf(MEMBER_STATUSES, message='Status must be Living or Deceased')
    ])
    occupation = StringField('Occupation', validators=[Optional(), Length(max=150)])
    email = StringField('Email', validators=[Optional(), Email(message='Invalid email address')])
    branchToken = StringField('Branch Link', validators=[Optional(), Length(max=64)])

    def pending_values(self):
        """PendingMember column values for the fields that were filled in."""
        values = {}
        for key, column in PENDING_COLUMNS.items():
            value = self[key].data
            if value not in (None, ''):
                values[column] = value.strip() if isinstance(value, str) else value
        return values


class ReviewForm(ApiForm):
    action = StringField('Action', validators=[
        DataRequired(message='Action is required'),
        AnyOf(REVIEW_ACTIONS, message='Action must be approve or reject')
    ])
    reviewNote = StringField('Review Note', validators=[Optional(), Length(max=2000)])


class BranchLinkForm(ApiForm):
    branchHeadId = StringField('Branch Head', validators=[
        DataRequired(message='Branch head is required'),
        Length(max=20)
    ])
    expiresInDays = IntegerField('Expires In (days)', validators=[
        Optional(),
        NumberRange(min=1, max=365, message='Expiry must be between 1 and 365 days')
    ])
