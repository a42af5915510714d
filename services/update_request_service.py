"""
Update Request Service
======================
Member-proposed edits to an existing FamilyMember.

Submission is the only sanitisation boundary: keys outside
``ALLOWED_UPDATE_FIELDS`` are dropped and HTML is stripped from string values
before anything is stored.  Review then merges the stored changes (all of
them, or an approved subset) into the member.
"""
import json
import re

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from wtforms import IntegerField, StringField
from wtforms.validators import AnyOf, Email, Length, NumberRange, Optional

from extensions import db
from models.members import FamilyMember, MEMBER_STATUSES
from models.update_requests import (
    MemberUpdateRequest, ALLOWED_UPDATE_FIELDS, REQUEST_PENDING, REQUEST_APPROVED,
    REQUEST_PARTIALLY_APPROVED, REQUEST_REJECTED,
)
from utils.audit import log_activity, CATEGORY_MEMBER, CATEGORY_ADMIN
from utils.db_helpers import get_or_404, utcnow
from utils.errors import AuthorizationError, ConflictError, DatabaseError, ValidationError
from utils.forms import ApiForm, validate_json

SCRIPT_RE = re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE)
TAG_RE = re.compile(r'<[^>]*>')

REVIEW_OUTCOMES = {
    'APPROVE': REQUEST_APPROVED,
    'PARTIAL_APPROVE': REQUEST_PARTIALLY_APPROVED,
    'REJECT': REQUEST_REJECTED,
}

REVIEW_MESSAGES = {
    REQUEST_APPROVED: ('Request approved and changes applied', 'تمت الموافقة على الطلب وتطبيق التغييرات'),
    REQUEST_PARTIALLY_APPROVED: ('Request partially approved', 'تمت الموافقة الجزئية على الطلب'),
    REQUEST_REJECTED: ('Request rejected', 'تم رفض الطلب'),
}


def sanitize_string(value):
    """Remove script blocks and HTML tags."""
    if not value:
        return ''
    return TAG_RE.sub('', SCRIPT_RE.sub('', value)).strip()


def filter_proposed_changes(proposed):
    """Keep only allow-listed fields; strings are sanitised."""
    filtered = {}
    for field, value in proposed.items():
        if field in ALLOWED_UPDATE_FIELDS:
            filtered[field] = sanitize_string(value) if isinstance(value, str) else value
    return filtered


class ProposedChangesForm(ApiForm):
    birthYear = IntegerField('Birth Year', validators=[Optional(), NumberRange(min=1000, max=2200)])
    deathYear = IntegerField('Death Year', validators=[Optional(), NumberRange(min=1000, max=2200)])
    phone = StringField('Phone', validators=[Optional(), Length(max=30)])
    email = StringField('Email', validators=[Optional(), Email(message='Invalid email address'), Length(max=120)])
    city = StringField('City', validators=[Optional(), Length(max=100)])
    photoUrl = StringField('Photo URL', validators=[Optional(), Length(max=2000)])
    biography = StringField('Biography', validators=[Optional(), Length(max=5000)])
    occupation = StringField('Occupation', validators=[Optional(), Length(max=150)])
    status = StringField('Status', validators=[
        Optional(),
        AnyOf(MEMBER_STATUSES, message='Status must be Living or Deceased')
    ])


def validate_proposed_changes(changes):
    """
    Type-check filtered *changes* and return them with typed values.

    Only the fields present are checked.  Empty values clear the field,
    except ``status`` which must stay Living or Deceased.
    """
    field_errors = {key: 'Must be a single value' for key, value in changes.items()
                    if isinstance(value, (dict, list))}
    if field_errors:
        raise ValidationError('Invalid proposed changes', 'التغييرات المقترحة غير صالحة',
                              field_errors=field_errors)

    form = validate_json(ProposedChangesForm, changes)
    cleaned = {}
    for key in changes:
        value = form[key].data
        cleaned[key] = (value.strip() or None) if isinstance(value, str) else value
    if 'status' in cleaned and cleaned['status'] is None:
        raise ValidationError('Invalid proposed changes', 'التغييرات المقترحة غير صالحة',
                              field_errors={'status': 'Status must be Living or Deceased'})
    return cleaned


class UpdateRequestService:

    @staticmethod
    def get_request(request_id):
        return get_or_404(MemberUpdateRequest, request_id, 'Request', 'الطلب غير موجود')

    @staticmethod
    def submit(member_id, proposed_changes, submitter, photo_data=None, message=None, ip_address=None):
        """Store a new PENDING request; raises ValidationError when nothing valid remains."""
        if not member_id or not isinstance(proposed_changes, dict):
            raise ValidationError('Member ID and proposed changes are required',
                                  'معرف العضو والتغييرات المقترحة مطلوبة')
        member = get_or_404(FamilyMember, member_id, 'Member', 'العضو غير موجود')

        changes = validate_proposed_changes(filter_proposed_changes(proposed_changes))
        if not changes and not photo_data:
            raise ValidationError('No valid changes proposed', 'لا توجد تغييرات صالحة',
                                  details={'allowedFields': list(ALLOWED_UPDATE_FIELDS)})

        update_request = MemberUpdateRequest(
            member_id=member.id,
            member_name=member.display_name,
            submitted_by_id=submitter.id,
            submitted_by_name=submitter.name_arabic,
            submitted_by_email=submitter.email,
            proposed_changes=json.dumps(changes, ensure_ascii=False),
            proposed_photo_data=photo_data or None,
            message=sanitize_string(message) or None,
            status=REQUEST_PENDING,
            ip_address=ip_address,
        )
        try:
            db.session.add(update_request)
            db.session.flush()
            log_activity(
                'SUBMIT_UPDATE_REQUEST', CATEGORY_MEMBER,
                f'Submitted update request for {member.display_name}',
                target_type='FAMILY_MEMBER', target_id=member.id, target_name=member.display_name,
                details={'requestId': update_request.id, 'proposedFields': sorted(changes)},
                user=submitter,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f'Failed to submit update request for member {member_id}')
            raise DatabaseError('Failed to submit request', 'فشل في تقديم الطلب')
        return update_request

    @staticmethod
    def fields_to_apply(update_request, action, approved_fields=None):
        """camelCase changes a review with *action* would write to the member."""
        proposed = update_request.get_proposed_changes()
        photo = update_request.proposed_photo_data

        if action == 'APPROVE':
            fields = dict(proposed)
            if photo:
                fields['photoUrl'] = photo
        elif action == 'PARTIAL_APPROVE':
            approved = [f for f in (approved_fields or []) if f in ALLOWED_UPDATE_FIELDS]
            fields = {f: proposed[f] for f in approved if f in proposed}
            if 'photoUrl' in approved and photo:
                fields['photoUrl'] = photo
        else:
            fields = {}
        # The stored changes are already filtered; re-check in case of old rows
        return {k: v for k, v in fields.items() if k in ALLOWED_UPDATE_FIELDS}

    @staticmethod
    def review(request_id, action, reviewer, review_notes=None, approved_fields=None):
        """
        Apply a review decision.

        Returns ``(update_request, applied_fields)``.
        """
        if action not in REVIEW_OUTCOMES:
            raise ValidationError('Invalid action', 'إجراء غير صالح',
                                  field_errors={'action': 'Must be APPROVE, REJECT or PARTIAL_APPROVE'})
        if action == 'PARTIAL_APPROVE' and not isinstance(approved_fields, list):
            raise ValidationError('approvedFields must be a list', 'يجب تحديد الحقول الموافق عليها',
                                  field_errors={'approvedFields': 'Required for partial approval'})

        update_request = UpdateRequestService.get_request(request_id)
        if update_request.status != REQUEST_PENDING:
            raise ConflictError('Request already processed', 'تمت معالجة الطلب مسبقاً')

        new_status = REVIEW_OUTCOMES[action]
        fields = UpdateRequestService.fields_to_apply(update_request, action, approved_fields)

        try:
            claimed = MemberUpdateRequest.query.filter_by(
                id=update_request.id, status=REQUEST_PENDING
            ).update({
                'status': new_status,
                'reviewed_by_id': reviewer.id,
                'reviewed_by_name': reviewer.name_arabic,
                'reviewed_at': utcnow(),
                'review_notes': review_notes or None,
                'approved_fields': json.dumps(approved_fields) if approved_fields else None,
            }, synchronize_session='fetch')
            if claimed != 1:
                db.session.rollback()
                raise ConflictError('Request already processed', 'تمت معالجة الطلب مسبقاً')

            if fields:
                member = get_or_404(FamilyMember, update_request.member_id, 'Member', 'العضو غير موجود')
                member.apply_changes(fields)
                member.last_modified_by = str(reviewer.id)

            log_activity(
                f'{action}_UPDATE_REQUEST', CATEGORY_ADMIN,
                f'{new_status.replace("_", " ").title()} update request {update_request.id}',
                target_type='MEMBER_UPDATE_REQUEST', target_id=update_request.id,
                target_name=update_request.member_name,
                details={
                    'memberId': update_request.member_id,
                    'action': action,
                    'appliedFields': sorted(fields),
                    'reviewNotes': review_notes,
                },
                user=reviewer,
            )
            db.session.commit()
        except ValueError as exc:
            db.session.rollback()
            current_app.logger.warning(f'Update request {request_id} holds invalid changes: {exc}')
            raise ValidationError(f'Stored changes are invalid: {exc}', 'التغييرات المخزنة غير صالحة')
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f'Failed to review update request {request_id}')
            raise DatabaseError('Failed to process request', 'فشل في معالجة الطلب')

        current_app.logger.info(
            f'Update request {update_request.id} {new_status} by user {reviewer.id}; applied {sorted(fields)}'
        )
        return update_request, sorted(fields)

    @staticmethod
    def cancel(request_id, user, is_manager=False):
        """Delete a PENDING request; only its submitter or a user manager may cancel."""
        update_request = UpdateRequestService.get_request(request_id)
        if update_request.submitted_by_id != user.id and not is_manager:
            raise AuthorizationError('Access denied', 'الوصول مرفوض')
        if update_request.status != REQUEST_PENDING:
            raise ValidationError('Can only cancel pending requests', 'يمكن إلغاء الطلبات المعلقة فقط')

        db.session.delete(update_request)
        log_activity(
            'CANCEL_UPDATE_REQUEST', CATEGORY_MEMBER,
            f'Cancelled update request {request_id}',
            target_type='MEMBER_UPDATE_REQUEST', target_id=request_id,
            target_name=update_request.member_name, user=user,
        )
        db.session.commit()
