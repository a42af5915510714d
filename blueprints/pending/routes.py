"""
Pending Member Routes
Public submission, admin review queue and branch entry links
"""
from flask import current_app, request
from flask_login import current_user, login_required

from . import pending_bp
from .forms import PendingMemberForm, ReviewForm, BranchLinkForm
from extensions import limiter
from models.invites import BranchEntryLink
from models.pending import PendingMember, REVIEW_STATUSES
from services.approval_service import ApprovalService
from utils.db_helpers import branch_scoped
from utils.errors import NotFoundError, ValidationError
from utils.forms import validate_json
from utils.permissions import (
    ADMIN_ROLES, Permission, Role, require_permission, require_role, to_role,
)
from utils.responses import json_success, client_info


# ── Public ────────────────────────────────────────────────────────────────────

@pending_bp.route('/pending', methods=['POST'])
@limiter.limit(lambda: current_app.config['RATELIMIT_PUBLIC_SUBMISSION'])
def submit_pending_member():
    form = validate_json(PendingMemberForm)
    ip_address, _ = client_info()
    submitter = current_user._get_current_object() if current_user.is_authenticated else None

    pending = ApprovalService.submit_pending_member(
        form.pending_values(),
        branch_token=form.branchToken.data or None,
        submitter=submitter,
        ip_address=ip_address,
    )
    return json_success(
        'Submission received and awaiting review',
        'تم استلام الطلب وهو بانتظار المراجعة',
        status=201,
        pending=pending.to_dict(),
    )


@pending_bp.route('/branch-links/<token>', methods=['GET'])
def validate_branch_link(token):
    link = BranchEntryLink.query.filter_by(token=token).first()
    if link is None or not link.is_usable():
        raise ValidationError('Invalid or expired branch link', 'رابط الفرع غير صالح أو منتهي')
    return json_success(valid=True, link={
        'branchHeadId': link.branch_head_id,
        'branchHeadName': link.branch_head_name,
        'branch': link.branch,
    })


# ── Review queue ──────────────────────────────────────────────────────────────

def _visible_pending(pending_id, user):
    """Fetch a pending record; leaders get 404 for other branches."""
    pending = ApprovalService.get_pending(pending_id)
    if to_role(user.role) == Role.BRANCH_LEADER and pending.branch != user.assigned_branch:
        raise NotFoundError('Pending member not found', 'العضو المعلق غير موجود',
                            resource_type='PendingMember', resource_id=str(pending_id))
    return pending


@pending_bp.route('/admin/pending', methods=['GET'])
@login_required
def list_pending():
    user = require_permission(Permission.APPROVE_PENDING_MEMBERS)
    status = request.args.get('status', 'PENDING').upper()
    query = branch_scoped(PendingMember.query, PendingMember, user)
    if status != 'ALL':
        if status not in REVIEW_STATUSES:
            raise ValidationError('Invalid status filter', 'مرشح الحالة غير صالح',
                                  field_errors={'status': f'Must be one of {", ".join(REVIEW_STATUSES)} or ALL'})
        query = query.filter(PendingMember.review_status == status)
    pending = query.order_by(PendingMember.submitted_at.desc()).all()
    return json_success(pending=[p.to_dict() for p in pending], total=len(pending))


@pending_bp.route('/admin/pending/<int:pending_id>', methods=['GET'])
@login_required
def get_pending(pending_id):
    user = require_permission(Permission.APPROVE_PENDING_MEMBERS)
    return json_success(pending=_visible_pending(pending_id, user).to_dict())


@pending_bp.route('/admin/pending/<int:pending_id>', methods=['POST'])
@login_required
def review_pending(pending_id):
    user = require_permission(Permission.APPROVE_PENDING_MEMBERS, allow_roles=ADMIN_ROLES)
    form = validate_json(ReviewForm)
    pending, member = ApprovalService.review_pending_member(
        pending_id, form.action.data, user, form.reviewNote.data or None
    )
    if member is not None:
        return json_success('Member approved and added to the tree', 'تمت الموافقة وإضافة العضو إلى الشجرة',
                            pending=pending.to_dict(), member=member.to_dict())
    return json_success('Submission rejected', 'تم رفض الطلب', pending=pending.to_dict())


@pending_bp.route('/admin/pending/<int:pending_id>', methods=['DELETE'])
@login_required
def delete_pending(pending_id):
    user = require_role(Role.ADMIN, Role.SUPER_ADMIN)
    ApprovalService.delete_pending(pending_id, user)
    return json_success('Pending member deleted', 'تم حذف العضو المعلق')


# ── Branch entry links ────────────────────────────────────────────────────────

@pending_bp.route('/admin/branch-links', methods=['GET'])
@login_required
def list_branch_links():
    user = require_permission(Permission.MANAGE_BRANCH_LINKS)
    query = branch_scoped(BranchEntryLink.query, BranchEntryLink, user)
    if request.args.get('active') == 'true':
        query = query.filter(BranchEntryLink.is_active.is_(True))
    links = query.order_by(BranchEntryLink.created_at.desc()).all()
    return json_success(links=[link.to_dict() for link in links])


@pending_bp.route('/admin/branch-links', methods=['POST'])
@login_required
def create_branch_link():
    user = require_permission(Permission.MANAGE_BRANCH_LINKS)
    form = validate_json(BranchLinkForm)
    link, created = ApprovalService.create_branch_link(form.branchHeadId.data.strip(), user,
                                                       expires_in_days=form.expiresInDays.data)
    if created:
        return json_success('Branch link created', 'تم إنشاء رابط الفرع', status=201, link=link.to_dict())
    return json_success('An active link already exists', 'يوجد رابط فعال مسبقاً', link=link.to_dict())


@pending_bp.route('/admin/branch-links/<int:link_id>', methods=['DELETE'])
@login_required
def deactivate_branch_link(link_id):
    user = require_permission(Permission.MANAGE_BRANCH_LINKS)
    link = ApprovalService.deactivate_branch_link(link_id, user)
    return json_success('Branch link deactivated', 'تم تعطيل رابط الفرع', link=link.to_dict())
