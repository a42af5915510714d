from wtforms import StringField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from utils.forms import ApiForm


class SnapshotForm(ApiForm):
    name = StringField('Name', validators=[
        DataRequired(message='Snapshot name is required'),
        Length(max=200)
    ])
    description = StringField('Description', validators=[Optional(), Length(max=2000)])


class SnapshotActionForm(ApiForm):
    action = StringField('Action', validators=[
        DataRequired(message='Action is required'),
        AnyOf(('restore',), message='Unsupported action')
    ])
