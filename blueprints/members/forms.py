"""Member create / edit bodies"""
from wtforms import StringField, IntegerField
from wtforms.validators import AnyOf, DataRequired, Email, Length, NumberRange, Optional

from models.members import GENDERS, MEMBER_STATUSES
from utils.forms import ApiForm

YEAR_RANGE = NumberRange(min=1000, max=2200, message='Year is out of range')


class MemberForm(ApiForm):
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
    birthYear = IntegerField('Birth Year', validators=[Optional(), YEAR_RANGE])
    deathYear = IntegerField('Death Year', validators=[Optional(), YEAR_RANGE])
    sonsCount = IntegerField('Sons', validators=[Optional(), NumberRange(min=0)])
    daughtersCount = IntegerField('Daughters', validators=[Optional(), NumberRange(min=0)])
    generation = IntegerField('Generation', validators=[
        DataRequired(message='Generation is required'),
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
    ], default='Living')
    photoUrl = StringField('Photo URL', validators=[Optional()])
    biography = StringField('Biography', validators=[Optional(), Length(max=5000)])
    occupation = StringField('Occupation', validators=[Optional(), Length(max=150)])
    email = StringField('Email', validators=[Optional(), Email(message='Invalid email address')])


class MemberEditForm(MemberForm):
    """Every field optional; only keys present in the body are applied."""
    firstName = StringField('First Name', validators=[Optional(), Length(min=1, max=100)])
    gender = StringField('Gender', validators=[
        Optional(),
        AnyOf(GENDERS, message='Gender must be Male or Female')
    ])
    generation = IntegerField('Generation', validators=[
        Optional(),
        NumberRange(min=1, message='Generation must be at least 1')
    ])
