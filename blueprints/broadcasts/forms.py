"""Broadcast create / edit and RSVP bodies"""
from wtforms import BooleanField, DateTimeField, IntegerField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, NumberRange, Optional, URL

from models.broadcasts import BROADCAST_TYPES, TARGET_AUDIENCES, RSVP_RESPONSES
from utils.forms import ApiForm

# ISO-8601 variants browsers and clients send
DATETIME_FORMATS = [
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d',
]

# JSON key -> Broadcast column
BROADCAST_COLUMNS = {
    'titleAr': 'title_ar',
    'titleEn': 'title_en',
    'contentAr': 'content_ar',
    'contentEn': 'content_en',
    'type': 'type',
    'meetingDate': 'meeting_date',
    'meetingLocation': 'meeting_location',
    'meetingUrl': 'meeting_url',
    'rsvpRequired': 'rsvp_required',
    'rsvpDeadline': 'rsvp_deadline',
    'targetAudience': 'target_audience',
    'targetBranch': 'target_branch',
    'targetGeneration': 'target_generation',
    'scheduledAt': 'scheduled_at',
}
REQUIRED_COLUMNS = ('title_ar', 'content_ar', 'type', 'target_audience')


class BroadcastForm(ApiForm):
    titleAr = StringField('Title (Arabic)', validators=[
        DataRequired(message='Arabic title is required'),
        Length(max=255)
    ])
    titleEn = StringField('Title (English)', validators=[Optional(), Length(max=255)])
    contentAr = StringField('Content (Arabic)', validators=[DataRequired(message='Arabic content is required')])
    contentEn = StringField('Content (English)', validators=[Optional()])
    type = StringField('Type', validators=[
        Optional(),
        AnyOf(BROADCAST_TYPES, message='Invalid broadcast type')
    ], default='ANNOUNCEMENT')
    meetingDate = DateTimeField('Meeting Date', validators=[Optional()], format=DATETIME_FORMATS)
    meetingLocation = StringField('Meeting Location', validators=[Optional(), Length(max=255)])
    meetingUrl = StringField('Meeting URL', validators=[Optional(), URL(message='Invalid URL'), Length(max=500)])
    rsvpRequired = BooleanField('RSVP Required', false_values=('false', '0', ''))
    rsvpDeadline = DateTimeField('RSVP Deadline', validators=[Optional()], format=DATETIME_FORMATS)
    targetAudience = StringField('Audience', validators=[
        Optional(),
        AnyOf(TARGET_AUDIENCES, message='Invalid target audience')
    ], default='ALL')
    targetBranch = StringField('Target Branch', validators=[Optional(), Length(max=100)])
    targetGeneration = IntegerField('Target Generation', validators=[Optional(), NumberRange(min=1)])
    scheduledAt = DateTimeField('Scheduled At', validators=[Optional()], format=DATETIME_FORMATS)

    def column_values(self, keys=None):
        """Broadcast column values; restricted to *keys* when given."""
        keys = BROADCAST_COLUMNS if keys is None else [k for k in keys if k in BROADCAST_COLUMNS]
        values = {}
        for key in keys:
            value = self[key].data
            value = None if value == '' else value
            if value is None and BROADCAST_COLUMNS[key] in REQUIRED_COLUMNS:
                continue
            values[BROADCAST_COLUMNS[key]] = value
        return values


class BroadcastEditForm(BroadcastForm):
    titleAr = StringField('Title (Arabic)', validators=[Optional(), Length(min=1, max=255)])
    contentAr = StringField('Content (Arabic)', validators=[Optional()])
    type = StringField('Type', validators=[
        Optional(),
        AnyOf(BROADCAST_TYPES, message='Invalid broadcast type')
    ])
    targetAudience = StringField('Audience', validators=[
        Optional(),
        AnyOf(TARGET_AUDIENCES, message='Invalid target audience')
    ])


class RsvpForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])
    response = StringField('Response', validators=[
        DataRequired(message='Response is required'),
        AnyOf(RSVP_RESPONSES, message='Response must be YES, NO or MAYBE')
    ])
    note = StringField('Note', validators=[Optional(), Length(max=1000)])
