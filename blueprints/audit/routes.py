from flask import request

from . import audit_bp
from models.activity_log import ActivityLog
from utils.db_helpers import paginate
from utils.permissions import Permission, require_permission
from utils.responses import json_success


@audit_bp.route('', methods=['GET'])
def list_activity():
    require_permission(Permission.VIEW_AUDIT_LOGS)
    query = ActivityLog.query
    category = request.args.get('category')
    if category:
        query = query.filter(ActivityLog.category == category.upper())
    action = request.args.get('action')
    if action:
        query = query.filter(ActivityLog.action == action.upper())
    user_id = request.args.get('userId', type=int)
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    target_id = request.args.get('targetId')
    if target_id:
        query = query.filter(ActivityLog.target_id == target_id)

    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    logs, pagination = paginate(query, request.args.get('page', 1, type=int),
                                request.args.get('limit', 50, type=int), max_limit=200)
    return json_success(logs=[log.to_dict() for log in logs], pagination=pagination)
