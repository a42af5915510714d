"""
Activity (audit) logging.

``log_activity`` adds one ``ActivityLog`` row to the current database session;
the caller commits it together with the change it describes so that an action
and its audit entry are persisted atomically.
"""
import json

from flask import has_request_context
from flask_login import current_user

from extensions import db
from models.activity_log import ActivityLog
from utils.responses import client_info

# Categories
CATEGORY_AUTH = 'AUTH'
CATEGORY_MEMBER = 'MEMBER'
CATEGORY_ADMIN = 'ADMIN'
CATEGORY_BACKUP = 'BACKUP'
CATEGORY_BROADCAST = 'BROADCAST'
CATEGORY_USER = 'USER'
CATEGORY_IMAGE = 'IMAGE'


def log_activity(action, category, description, target_type=None, target_id=None,
                 target_name=None, details=None, user=None, success=True, error_message=None):
    """Queue an ActivityLog row describing *action*; returns the unsaved row."""
    if user is None and has_request_context() and current_user and current_user.is_authenticated:
        user = current_user

    ip_address, user_agent = (None, None)
    if has_request_context():
        ip_address, user_agent = client_info()

    entry = ActivityLog(
        user_id=getattr(user, 'id', None),
        user_name=getattr(user, 'name_arabic', None) or ('SYSTEM' if user is None else None),
        user_role=getattr(user, 'role', None),
        action=action,
        category=category,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        target_name=target_name,
        description=description,
        details=json.dumps(details, ensure_ascii=False, default=str) if details else None,
        ip_address=ip_address,
        user_agent=(user_agent or '')[:255] or None,
        success=success,
        error_message=error_message,
    )
    db.session.add(entry)
    return entry
