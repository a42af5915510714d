from flask import request
from sqlalchemy import or_

from . import users_bp
from .forms import UserUpdateForm
from models.users import User
from services.auth_service import AuthService
from utils.db_helpers import paginate
from utils.errors import ValidationError
from utils.forms import validate_json
from utils.permissions import Permission, require_permission
from utils.responses import json_success, get_json_body


@users_bp.route('', methods=['GET'])
def list_users():
    require_permission(Permission.VIEW_USERS)
    query = User.query
    for arg, column in (('role', User.role), ('status', User.status), ('branch', User.assigned_branch)):
        value = request.args.get(arg)
        if value:
            query = query.filter(column == value)
    search = request.args.get('search')
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(User.email.ilike(pattern), User.name_arabic.ilike(pattern),
                                 User.name_english.ilike(pattern)))

    users, pagination = paginate(query.order_by(User.created_at.desc()),
                                 request.args.get('page', 1, type=int),
                                 request.args.get('limit', 50, type=int), max_limit=200)
    return json_success(users=[u.to_dict() for u in users], pagination=pagination)


@users_bp.route('/<int:user_id>', methods=['PATCH'])
def update_user(user_id):
    actor = require_permission(Permission.CHANGE_USER_ROLES)
    data = get_json_body()
    form = validate_json(UserUpdateForm, data)
    changes = {key: value for key, value in form.provided(data).items() if value is not None}
    if not changes:
        raise ValidationError('No changes supplied', 'لا توجد تغييرات')
    target = AuthService.update_user(user_id, changes, actor)
    return json_success('User updated', 'تم تحديث المستخدم', user=target.to_dict())
