from wtforms import StringField
from wtforms.validators import AnyOf, Length, Optional

from models.users import USER_STATUSES
from utils.forms import ApiForm
from utils.permissions import Role


class UserUpdateForm(ApiForm):
    role = StringField('Role', validators=[
        Optional(),
        AnyOf([r.value for r in Role], message='Invalid role')
    ])
    status = StringField('Status', validators=[
        Optional(),
        AnyOf(USER_STATUSES, message='Invalid status')
    ])
    assignedBranch = StringField('Assigned Branch', validators=[Optional(), Length(max=100)])
