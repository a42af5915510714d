"""
Member Update Request Routes
Members propose edits to an existing record; reviewers apply or reject them
"""
from flask import request

from . import update_requests_bp
from .forms import UpdateRequestForm, UpdateReviewForm
from models.members import FamilyMember
from models.update_requests import MemberUpdateRequest, REQUEST_PENDING
from services.update_request_service import UpdateRequestService, REVIEW_MESSAGES
from extensions import db
from utils.db_helpers import paginate
from utils.errors import AuthorizationError
from utils.forms import validate_json
from utils.permissions import Permission, get_current_user, has_permission, require_permission
from utils.responses import json_success, get_json_body, client_info


def _is_reviewer(user):
    return has_permission(user.role, Permission.APPROVE_PENDING_MEMBERS)


@update_requests_bp.route('', methods=['POST'])
def submit_request():
    user = require_permission(Permission.SUGGEST_EDIT)
    data = get_json_body()
    form = validate_json(UpdateRequestForm, data)
    ip_address, _ = client_info()
    update_request = UpdateRequestService.submit(
        form.memberId.data.strip(),
        data.get('proposedChanges') or {},
        user,
        photo_data=form.photoData.data or None,
        message=form.message.data or None,
        ip_address=ip_address,
    )
    return json_success('Update request submitted', 'تم تقديم طلب التحديث', status=201,
                        request=update_request.to_dict())


@update_requests_bp.route('', methods=['GET'])
def list_requests():
    user = get_current_user()
    status = request.args.get('status', REQUEST_PENDING).upper()

    query = MemberUpdateRequest.query
    if not _is_reviewer(user):
        query = query.filter(MemberUpdateRequest.submitted_by_id == user.id)
    if status != 'ALL':
        query = query.filter(MemberUpdateRequest.status == status)
    query = query.order_by(MemberUpdateRequest.created_at.desc())

    requests_, pagination = paginate(query, request.args.get('page', 1, type=int),
                                     request.args.get('limit', 20, type=int))
    return json_success(requests=[r.to_dict() for r in requests_], pagination=pagination)


@update_requests_bp.route('/<int:request_id>', methods=['GET'])
def get_request(request_id):
    user = get_current_user()
    update_request = UpdateRequestService.get_request(request_id)
    if update_request.submitted_by_id != user.id and not _is_reviewer(user):
        raise AuthorizationError('Access denied', 'الوصول مرفوض')

    # Current values shown next to the proposal
    member = db.session.get(FamilyMember, update_request.member_id)
    payload = update_request.to_dict()
    payload['proposedPhotoData'] = update_request.proposed_photo_data
    return json_success(request=payload, currentMember=member.to_dict() if member else None)


@update_requests_bp.route('/<int:request_id>', methods=['PATCH'])
def review_request(request_id):
    user = require_permission(Permission.APPROVE_PENDING_MEMBERS)
    data = get_json_body()
    form = validate_json(UpdateReviewForm, data)
    update_request, applied = UpdateRequestService.review(
        request_id, form.action.data, user,
        review_notes=form.reviewNotes.data or None,
        approved_fields=data.get('approvedFields'),
    )
    message, message_ar = REVIEW_MESSAGES[update_request.status]
    return json_success(message, message_ar, request=update_request.to_dict(), appliedFields=applied)


@update_requests_bp.route('/<int:request_id>', methods=['DELETE'])
def cancel_request(request_id):
    user = get_current_user()
    UpdateRequestService.cancel(request_id, user,
                                is_manager=has_permission(user.role, Permission.CHANGE_USER_ROLES))
    return json_success('Request cancelled', 'تم إلغاء الطلب')
