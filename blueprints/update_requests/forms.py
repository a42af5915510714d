"""Update request bodies; ``proposedChanges`` and ``approvedFields`` are read from the raw JSON"""
from wtforms import StringField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from services.update_request_service import REVIEW_OUTCOMES
from utils.forms import ApiForm


class UpdateRequestForm(ApiForm):
    memberId = StringField('Member', validators=[
        DataRequired(message='Member ID is required'),
        Length(max=20)
    ])
    photoData = StringField('Photo', validators=[Optional()])
    message = StringField('Message', validators=[Optional(), Length(max=2000)])


class UpdateReviewForm(ApiForm):
    action = StringField('Action', validators=[
        DataRequired(message='Action is required'),
        AnyOf(tuple(REVIEW_OUTCOMES), message='Action must be APPROVE, REJECT or PARTIAL_APPROVE')
    ])
    reviewNotes = StringField('Review Notes', validators=[Optional(), Length(max=2000)])
