"""
Broadcast Service
=================
Email broadcasts (meetings, announcements, reminders, updates) with RSVP.

Sending resolves the audience, stores one BroadcastRecipient per email
address and delivers each through EmailService.  A failed delivery is counted
against that recipient only; the broadcast is still marked SENT and the
overall result reports ``success = failedCount == 0``.
"""
import html as html_lib
import json

from flask import current_app

from extensions import db
from models.broadcasts import (
    Broadcast, BroadcastRecipient, BROADCAST_TYPES, TARGET_AUDIENCES, RSVP_RESPONSES,
)
from models.members import FamilyMember
from models.users import User, USER_ACTIVE
from services.email_service import EmailService
from utils.audit import log_activity, CATEGORY_BROADCAST
from utils.db_helpers import get_or_404, utcnow
from utils.errors import ConflictError, NotFoundError, ValidationError

TYPE_LABELS = {
    'MEETING': ('دعوة اجتماع', 'Meeting Invitation'),
    'ANNOUNCEMENT': ('إعلان', 'Announcement'),
    'REMINDER': ('تذكير', 'Reminder'),
    'UPDATE': ('تحديث', 'Update'),
}

# Form field -> column for create/update
BROADCAST_FIELDS = (
    'title_ar', 'title_en', 'content_ar', 'content_en', 'type',
    'meeting_date', 'meeting_location', 'meeting_url', 'rsvp_required', 'rsvp_deadline',
    'target_audience', 'target_branch', 'target_generation', 'scheduled_at',
)


def render_broadcast_email(broadcast, recipient_name, recipient_email):
    """Return ``(subject, html, text)`` for one recipient."""
    label_ar, label_en = TYPE_LABELS.get(broadcast.type, TYPE_LABELS['ANNOUNCEMENT'])
    name = html_lib.escape(recipient_name or '')

    parts = [
        '<div dir="rtl">',
        f'<p>شجرة عائلة آل شايع - {label_en}</p>',
        f'<h2>{html_lib.escape(broadcast.title_ar)}</h2>',
        f'<p>السلام عليكم <strong>{name}</strong>،</p>',
        f'<div>{broadcast.content_ar}</div>',
    ]
    if broadcast.content_en:
        parts.append(f'<div dir="ltr">{broadcast.content_en}</div>')
    if broadcast.type == 'MEETING' and broadcast.meeting_date:
        parts.append(f'<p>التاريخ: {broadcast.meeting_date:%Y-%m-%d %H:%M}</p>')
        if broadcast.meeting_location:
            parts.append(f'<p>المكان: {html_lib.escape(broadcast.meeting_location)}</p>')
        if broadcast.meeting_url:
            parts.append(f'<p>الرابط: <a href="{broadcast.meeting_url}">{broadcast.meeting_url}</a></p>')
    if broadcast.rsvp_required:
        rsvp_url = f'{current_app.config["APP_BASE_URL"]}/api/broadcasts/{broadcast.id}/rsvp?email={recipient_email}'
        parts.append(
            f'<p><a href="{rsvp_url}&response=YES">سأحضر</a> | '
            f'<a href="{rsvp_url}&response=MAYBE">ربما</a> | '
            f'<a href="{rsvp_url}&response=NO">لن أحضر</a></p>'
        )
    parts.append('</div>')

    text = f'{label_ar}\n\n{broadcast.title_ar}\n\nالسلام عليكم {recipient_name}،\n\n{broadcast.content_ar}'
    return f'{label_ar}: {broadcast.title_ar}', '\n'.join(parts), text


class BroadcastService:

    @staticmethod
    def get_broadcast(broadcast_id):
        return get_or_404(Broadcast, broadcast_id, 'Broadcast', 'الرسالة غير موجودة')

    @staticmethod
    def _validate(broadcast):
        if broadcast.type not in BROADCAST_TYPES:
            raise ValidationError('Invalid broadcast type', 'نوع الرسالة غير صالح',
                                  field_errors={'type': f'Must be one of {", ".join(BROADCAST_TYPES)}'})
        if broadcast.target_audience not in TARGET_AUDIENCES:
            raise ValidationError('Invalid target audience', 'الجمهور المستهدف غير صالح',
                                  field_errors={'targetAudience': f'Must be one of {", ".join(TARGET_AUDIENCES)}'})
        if broadcast.target_audience == 'BRANCH' and not broadcast.target_branch:
            raise ValidationError('Target branch is required', 'الفرع المستهدف مطلوب',
                                  field_errors={'targetBranch': 'Required for BRANCH audience'})
        if broadcast.target_audience == 'GENERATION' and not broadcast.target_generation:
            raise ValidationError('Target generation is required', 'الجيل المستهدف مطلوب',
                                  field_errors={'targetGeneration': 'Required for GENERATION audience'})

    @staticmethod
    def create_broadcast(values, target_member_ids, user):
        broadcast = Broadcast(**{k: v for k, v in values.items() if k in BROADCAST_FIELDS})
        broadcast.target_member_ids = json.dumps(target_member_ids) if target_member_ids else None
        broadcast.status = 'SCHEDULED' if broadcast.scheduled_at else 'DRAFT'
        broadcast.created_by_id = user.id
        broadcast.created_by_name = user.name_arabic
        broadcast.rsvp_required = bool(broadcast.rsvp_required)
        BroadcastService._validate(broadcast)

        db.session.add(broadcast)
        db.session.flush()
        log_activity('CREATE_BROADCAST', CATEGORY_BROADCAST, f'Created broadcast "{broadcast.title_ar}"',
                     target_type='BROADCAST', target_id=broadcast.id, target_name=broadcast.title_ar, user=user)
        db.session.commit()
        return broadcast

    @staticmethod
    def update_broadcast(broadcast_id, values, target_member_ids, user):
        broadcast = BroadcastService.get_broadcast(broadcast_id)
        if not broadcast.is_editable:
            raise ConflictError('Cannot update a broadcast that has been sent',
                                'لا يمكن تعديل رسالة تم إرسالها')
        for attr, value in values.items():
            if attr in BROADCAST_FIELDS:
                setattr(broadcast, attr, value)
        if target_member_ids is not None:
            broadcast.target_member_ids = json.dumps(target_member_ids)
        if broadcast.scheduled_at:
            broadcast.status = 'SCHEDULED'
        BroadcastService._validate(broadcast)

        log_activity('UPDATE_BROADCAST', CATEGORY_BROADCAST, f'Updated broadcast "{broadcast.title_ar}"',
                     target_type='BROADCAST', target_id=broadcast.id, target_name=broadcast.title_ar, user=user)
        db.session.commit()
        return broadcast

    @staticmethod
    def delete_broadcast(broadcast_id, user):
        broadcast = BroadcastService.get_broadcast(broadcast_id)
        if broadcast.status in ('SENT', 'SENDING'):
            raise ConflictError('Cannot delete a broadcast that has been sent',
                                'لا يمكن حذف رسالة تم إرسالها')
        title = broadcast.title_ar
        db.session.delete(broadcast)
        log_activity('DELETE_BROADCAST', CATEGORY_BROADCAST, f'Deleted broadcast "{title}"',
                     target_type='BROADCAST', target_id=broadcast_id, target_name=title, user=user)
        db.session.commit()

    @staticmethod
    def cancel_broadcast(broadcast_id, user):
        broadcast = BroadcastService.get_broadcast(broadcast_id)
        if broadcast.status == 'SENT':
            raise ConflictError('Cannot cancel a broadcast that has already been sent',
                                'لا يمكن إلغاء رسالة تم إرسالها')
        broadcast.status = 'CANCELLED'
        log_activity('CANCEL_BROADCAST', CATEGORY_BROADCAST, f'Cancelled broadcast "{broadcast.title_ar}"',
                     target_type='BROADCAST', target_id=broadcast.id, target_name=broadcast.title_ar, user=user)
        db.session.commit()
        return broadcast

    @staticmethod
    def get_recipients(broadcast):
        """Resolve the audience to ``[{memberId, memberName, email}]``, deduped by email."""
        query = FamilyMember.query.filter(FamilyMember.email.isnot(None), FamilyMember.email != '')
        audience = broadcast.target_audience
        if audience == 'CUSTOM':
            ids = broadcast.get_target_member_ids()
            members = query.filter(FamilyMember.id.in_(ids)).all() if ids else []
        else:
            query = query.filter(FamilyMember.status == 'Living')
            if audience == 'BRANCH':
                query = query.filter(FamilyMember.branch == broadcast.target_branch)
            elif audience == 'GENERATION':
                query = query.filter(FamilyMember.generation == broadcast.target_generation)
            members = query.order_by(FamilyMember.id).all()

        recipients = {}
        for member in members:
            recipients[member.email] = {
                'memberId': member.id,
                'memberName': member.display_name,
                'email': member.email,
            }
        users = User.query.filter(User.status == USER_ACTIVE, User.email != '').order_by(User.id).all()
        for user in users:
            if user.email not in recipients:
                recipients[user.email] = {
                    'memberId': user.linked_member_id,
                    'memberName': user.name_arabic,
                    'email': user.email,
                }
        return list(recipients.values())

    @staticmethod
    def send_broadcast(broadcast_id, user):
        """Deliver a broadcast; returns ``{success, totalRecipients, sentCount, failedCount, errors}``."""
        broadcast = BroadcastService.get_broadcast(broadcast_id)
        if broadcast.status == 'SENT':
            raise ConflictError('Broadcast has already been sent', 'تم إرسال الرسالة مسبقاً')
        if broadcast.status in ('SENDING', 'CANCELLED'):
            raise ConflictError(f'Broadcast is {broadcast.status.lower()}', 'لا يمكن إرسال هذه الرسالة')

        broadcast.status = 'SENDING'
        db.session.commit()

        recipients = BroadcastService.get_recipients(broadcast)
        rows = {}
        for recipient in recipients:
            row = BroadcastRecipient.query.filter_by(broadcast_id=broadcast.id, email=recipient['email']).first()
            if row is None:
                row = BroadcastRecipient(
                    broadcast_id=broadcast.id,
                    member_id=recipient['memberId'],
                    member_name=recipient['memberName'],
                    email=recipient['email'],
                    status='PENDING',
                )
                db.session.add(row)
            rows[recipient['email']] = row
        db.session.commit()

        sent_count, failed_count, errors = 0, 0, []
        for recipient in recipients:
            row = rows[recipient['email']]
            subject, html, text = render_broadcast_email(broadcast, recipient['memberName'], recipient['email'])
            result = EmailService.send_email(recipient['email'], subject, html=html, text=text)
            if result.success:
                sent_count += 1
                row.status = 'SENT'
                row.sent_at = utcnow()
                row.error_message = None
            else:
                failed_count += 1
                row.status = 'FAILED'
                row.error_message = result.error
                errors.append(f'{recipient["email"]}: {result.error}')

        broadcast.status = 'SENT'
        broadcast.sent_at = utcnow()
        broadcast.total_recipients = len(recipients)
        broadcast.sent_count = sent_count
        broadcast.failed_count = failed_count
        log_activity(
            'SEND_BROADCAST', CATEGORY_BROADCAST, f'Sent broadcast "{broadcast.title_ar}"',
            target_type='BROADCAST', target_id=broadcast.id, target_name=broadcast.title_ar,
            details={'totalRecipients': len(recipients), 'sentCount': sent_count, 'failedCount': failed_count},
            user=user, success=failed_count == 0,
        )
        db.session.commit()

        current_app.logger.info(
            f'Broadcast {broadcast.id} sent: {sent_count}/{len(recipients)} delivered, {failed_count} failed'
        )
        return {
            'success': failed_count == 0,
            'totalRecipients': len(recipients),
            'sentCount': sent_count,
            'failedCount': failed_count,
            'errors': errors,
        }

    @staticmethod
    def record_rsvp(broadcast_id, email, response, note=None):
        broadcast = BroadcastService.get_broadcast(broadcast_id)
        if not broadcast.rsvp_required:
            raise ValidationError('RSVP is not required for this broadcast', 'لا يتطلب هذا الإعلان تأكيد الحضور')
        if response not in RSVP_RESPONSES:
            raise ValidationError('Invalid RSVP response', 'رد غير صالح',
                                  field_errors={'response': 'Must be YES, NO or MAYBE'})
        if broadcast.rsvp_deadline and broadcast.rsvp_deadline < utcnow():
            raise ValidationError('RSVP deadline has passed', 'انتهى موعد تأكيد الحضور')

        recipient = BroadcastRecipient.query.filter_by(broadcast_id=broadcast.id, email=email).first()
        if recipient is None:
            raise NotFoundError('Recipient not found', 'المستلم غير موجود',
                                resource_type='BroadcastRecipient', resource_id=email)
        recipient.rsvp_response = response
        recipient.rsvp_responded_at = utcnow()
        recipient.rsvp_note = note
        db.session.flush()

        counts = dict(
            db.session.query(BroadcastRecipient.rsvp_response, db.func.count(BroadcastRecipient.id))
            .filter(BroadcastRecipient.broadcast_id == broadcast.id,
                    BroadcastRecipient.rsvp_response.isnot(None))
            .group_by(BroadcastRecipient.rsvp_response).all()
        )
        broadcast.rsvp_yes_count = counts.get('YES', 0)
        broadcast.rsvp_no_count = counts.get('NO', 0)
        broadcast.rsvp_maybe_count = counts.get('MAYBE', 0)
        db.session.commit()
        return recipient

    @staticmethod
    def rsvp_summary(broadcast):
        recipients = broadcast.recipients.order_by(BroadcastRecipient.member_name).all()
        summary = {'yes': [], 'no': [], 'maybe': [], 'noResponse': []}
        keys = {'YES': 'yes', 'NO': 'no', 'MAYBE': 'maybe'}
        for recipient in recipients:
            summary[keys.get(recipient.rsvp_response, 'noResponse')].append(recipient.to_dict())
        return recipients, summary
