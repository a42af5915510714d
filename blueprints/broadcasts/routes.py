"""
Broadcast Routes
Email campaigns to family members, sending and RSVP tracking
"""
from flask import request
from flask_login import login_required

from . import broadcasts_bp
from .forms import BroadcastForm, BroadcastEditForm, RsvpForm
from models.broadcasts import Broadcast, BROADCAST_STATUSES
from services.broadcast_service import BroadcastService
from utils.db_helpers import paginate
from utils.errors import ValidationError
from utils.forms import validate_json
from utils.permissions import ADMIN_ROLES, require_role
from utils.responses import json_success, get_json_body


def _target_member_ids(data):
    ids = data.get('targetMemberIds')
    if ids is None:
        return None
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise ValidationError('targetMemberIds must be a list of member ids', 'قائمة الأعضاء غير صالحة',
                              field_errors={'targetMemberIds': 'Expected a list of strings'})
    return ids


@broadcasts_bp.route('', methods=['GET'])
@login_required
def list_broadcasts():
    require_role(*ADMIN_ROLES)
    query = Broadcast.query
    status = request.args.get('status')
    if status:
        if status.upper() not in BROADCAST_STATUSES:
            raise ValidationError('Invalid status filter', 'مرشح الحالة غير صالح')
        query = query.filter(Broadcast.status == status.upper())
    broadcast_type = request.args.get('type')
    if broadcast_type:
        query = query.filter(Broadcast.type == broadcast_type.upper())
    query = query.order_by(Broadcast.created_at.desc())
    broadcasts, pagination = paginate(query, request.args.get('page', 1, type=int),
                                      request.args.get('limit', 20, type=int))
    return json_success(broadcasts=[b.to_dict() for b in broadcasts], pagination=pagination)


@broadcasts_bp.route('', methods=['POST'])
@login_required
def create_broadcast():
    user = require_role(*ADMIN_ROLES)
    data = get_json_body()
    form = validate_json(BroadcastForm, data)
    broadcast = BroadcastService.create_broadcast(form.column_values(), _target_member_ids(data), user)
    return json_success('Broadcast created', 'تم إنشاء الرسالة', status=201, broadcast=broadcast.to_dict())


@broadcasts_bp.route('/<int:broadcast_id>', methods=['GET'])
@login_required
def get_broadcast(broadcast_id):
    require_role(*ADMIN_ROLES)
    broadcast = BroadcastService.get_broadcast(broadcast_id)
    return json_success(broadcast=broadcast.to_dict())


@broadcasts_bp.route('/<int:broadcast_id>', methods=['PUT'])
@login_required
def update_broadcast(broadcast_id):
    user = require_role(*ADMIN_ROLES)
    data = get_json_body()
    form = validate_json(BroadcastEditForm, data)
    broadcast = BroadcastService.update_broadcast(broadcast_id, form.column_values(keys=data.keys()),
                                                  _target_member_ids(data), user)
    return json_success('Broadcast updated', 'تم تحديث الرسالة', broadcast=broadcast.to_dict())


@broadcasts_bp.route('/<int:broadcast_id>', methods=['DELETE'])
@login_required
def delete_broadcast(broadcast_id):
    user = require_role(*ADMIN_ROLES)
    BroadcastService.delete_broadcast(broadcast_id, user)
    return json_success('Broadcast deleted', 'تم حذف الرسالة')


@broadcasts_bp.route('/<int:broadcast_id>/send', methods=['POST'])
@login_required
def send_broadcast(broadcast_id):
    user = require_role(*ADMIN_ROLES)
    result = BroadcastService.send_broadcast(broadcast_id, user)
    if result['success']:
        message = (f'Sent to {result["sentCount"]} recipients', f'تم الإرسال إلى {result["sentCount"]} مستلم')
    else:
        message = (f'Sent with {result["failedCount"]} failures', f'تم الإرسال مع {result["failedCount"]} إخفاق')
    return json_success(*message, **result)


@broadcasts_bp.route('/<int:broadcast_id>/cancel', methods=['POST'])
@login_required
def cancel_broadcast(broadcast_id):
    user = require_role(*ADMIN_ROLES)
    broadcast = BroadcastService.cancel_broadcast(broadcast_id, user)
    return json_success('Broadcast cancelled', 'تم إلغاء الرسالة', broadcast=broadcast.to_dict())


@broadcasts_bp.route('/<int:broadcast_id>/recipients', methods=['GET'])
@login_required
def list_recipients(broadcast_id):
    require_role(*ADMIN_ROLES)
    broadcast = BroadcastService.get_broadcast(broadcast_id)
    recipients, summary = BroadcastService.rsvp_summary(broadcast)
    return json_success(
        recipients=[r.to_dict() for r in recipients],
        rsvpSummary=summary,
        counts={
            'total': len(recipients),
            'yes': len(summary['yes']),
            'no': len(summary['no']),
            'maybe': len(summary['maybe']),
            'noResponse': len(summary['noResponse']),
        },
    )


# ── RSVP (public; reached from the links in the email) ────────────────────────

@broadcasts_bp.route('/<int:broadcast_id>/rsvp', methods=['GET', 'POST'])
def rsvp(broadcast_id):
    data = get_json_body() if request.method == 'POST' else request.args.to_dict()
    form = validate_json(RsvpForm, data)
    recipient = BroadcastService.record_rsvp(
        broadcast_id, form.email.data.strip(), form.response.data, form.note.data or None
    )
    return json_success('Your response has been recorded', 'تم تسجيل ردك', rsvp=recipient.to_dict())
