"""
Authentication Forms
JSON bodies for login, invitations and password resets
"""
import re

from flask import current_app
from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import DataRequired, Email, Length, Optional, ValidationError

from utils.forms import ApiForm
from utils.permissions import Role


class LoginForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required')
    ])
    rememberMe = BooleanField('Remember Me')


class InviteForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])
    role = StringField('Role', validators=[Optional()], default=Role.MEMBER.value)
    branch = StringField('Branch', validators=[Optional(), Length(max=100)])
    message = StringField('Message', validators=[Optional(), Length(max=1000)])

    def validate_role(self, field):
        if field.data and field.data not in {r.value for r in Role}:
            raise ValidationError('Invalid role')


class AcceptInviteForm(ApiForm):
    code = StringField('Invite Code', validators=[DataRequired(message='Invite code is required')])
    password = PasswordField('Password', validators=[DataRequired(message='Password is required')])
    nameArabic = StringField('Arabic Name', validators=[
        DataRequired(message='Name is required'),
        Length(min=2, max=150, message='Name must be between 2 and 150 characters')
    ])
    nameEnglish = StringField('English Name', validators=[Optional(), Length(max=150)])
    phone = StringField('Phone', validators=[Optional(), Length(max=30)])

    def validate_password(self, field):
        is_valid, error = validate_password_strength(field.data)
        if not is_valid:
            raise ValidationError(error)


class ForgotPasswordForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])


class ResetPasswordForm(ApiForm):
    token = StringField('Token', validators=[DataRequired(message='Reset token is required')])
    password = PasswordField('Password', validators=[DataRequired(message='Password is required')])

    def validate_password(self, field):
        is_valid, error = validate_password_strength(field.data)
        if not is_valid:
            raise ValidationError(error)


def validate_password_strength(password):
    """
    Validate password meets security requirements
    Returns: (is_valid, error_message)
    """
    min_length = current_app.config.get('PASSWORD_MIN_LENGTH', 8)
    require_uppercase = current_app.config.get('PASSWORD_REQUIRE_UPPERCASE', True)
    require_lowercase = current_app.config.get('PASSWORD_REQUIRE_LOWERCASE', True)
    require_digit = current_app.config.get('PASSWORD_REQUIRE_DIGIT', True)
    require_special = current_app.config.get('PASSWORD_REQUIRE_SPECIAL', False)

    errors = []

    if len(password) < min_length:
        errors.append(f"at least {min_length} characters")

    if require_uppercase and not re.search(r'[A-Z]', password):
        errors.append("an uppercase letter")

    if require_lowercase and not re.search(r'[a-z]', password):
        errors.append("a lowercase letter")

    if require_digit and not re.search(r'\d', password):
        errors.append("a number")

    if require_special and not re.search(r'[!@#$%^&*(),.?":{}|<>]', password):
        errors.append("a special character (!@#$%^&*(),.?\":{}|<>)")

    if errors:
        return False, f"Password must contain {', '.join(errors)}"

    return True, None
