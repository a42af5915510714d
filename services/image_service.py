"""
Image Service
=============
Photo uploads, their review queue and the approved gallery.

Uploads are stored as ``PendingImage`` rows.  A review makes exactly one
terminal transition, claimed with a conditional UPDATE like pending members:

  PENDING -> APPROVED   MemberPhoto created, ``approved_photo_id`` set
  PENDING -> REJECTED   review notes required, nothing published
"""
import base64
import binascii
import json
import re

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.images import PendingImage, MemberPhoto, IMAGE_MIME_TYPES
from models.members import FamilyMember
from models.pending import REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED
from utils.audit import log_activity, CATEGORY_IMAGE
from utils.db_helpers import get_or_404, utcnow
from utils.errors import ConflictError, DatabaseError, ValidationError

DATA_URL_RE = re.compile(r'^data:(image/[a-zA-Z+.-]+);base64,(.+)$', re.DOTALL)
IMAGE_REVIEW_ACTIONS = ('approve', 'reject')


def validate_image_data(data_url):
    """Return ``(mime_type, size_bytes)`` for a base64 image data URL.

    Raises ValidationError for anything that is not an allowed image type
    or is larger than ``MAX_IMAGE_BYTES``.
    """
    match = DATA_URL_RE.match(data_url or '')
    if not match:
        raise ValidationError('Image must be a base64 data URL', 'صيغة الصورة غير صالحة',
                              field_errors={'imageData': 'Expected data:image/...;base64,...'})
    mime_type, payload = match.groups()
    if mime_type not in IMAGE_MIME_TYPES:
        raise ValidationError(f'Image type {mime_type} is not allowed', 'نوع الصورة غير مسموح',
                              field_errors={'imageData': f'Allowed types: {", ".join(IMAGE_MIME_TYPES)}'})
    try:
        size = len(base64.b64decode(payload, validate=True))
    except (binascii.Error, ValueError):
        raise ValidationError('Image data is not valid base64', 'بيانات الصورة غير صالحة',
                              field_errors={'imageData': 'Invalid base64'})
    max_bytes = current_app.config['MAX_IMAGE_BYTES']
    if size > max_bytes:
        raise ValidationError(f'Image too large; the limit is {max_bytes // (1024 * 1024)}MB',
                              'حجم الصورة أكبر من المسموح',
                              field_errors={'imageData': 'Too large'})
    return mime_type, size


def _require_member(member_id, field='memberId'):
    member = db.session.get(FamilyMember, member_id)
    if member is None:
        raise ValidationError('Member not found in the tree', 'العضو غير موجود في الشجرة',
                              field_errors={field: f'Unknown member {member_id}'})
    return member


class ImageService:

    # ------------------------------------------------------------------
    # Upload and review
    # ------------------------------------------------------------------

    @staticmethod
    def upload(values, image_data, uploaded_by_name, tagged_member_ids=None, uploader=None, ip_address=None):
        """
        Queue an uploaded image for review.

        *values* are PendingImage column values (category, titles, captions,
        year, member_id).  A referenced member must exist.
        """
        validate_image_data(image_data)
        pending = PendingImage(**values)
        if pending.member_id:
            member = _require_member(pending.member_id)
            pending.member_name = pending.member_name or member.display_name
        for member_id in tagged_member_ids or []:
            _require_member(member_id, 'taggedMemberIds')

        pending.image_data = image_data
        pending.tagged_member_ids = json.dumps(tagged_member_ids) if tagged_member_ids else None
        pending.uploaded_by_id = getattr(uploader, 'id', None)
        pending.uploaded_by_name = uploaded_by_name
        pending.uploaded_by_email = pending.uploaded_by_email or getattr(uploader, 'email', None)
        pending.ip_address = ip_address

        try:
            db.session.add(pending)
            db.session.flush()
            log_activity(
                'IMAGE_UPLOADED', CATEGORY_IMAGE, f'Uploaded {pending.category} photo',
                target_type='PENDING_IMAGE', target_id=pending.id, target_name=pending.title,
                details={'memberId': pending.member_id, 'category': pending.category}, user=uploader,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Failed to store image upload')
            raise DatabaseError('Failed to upload image', 'فشل في رفع الصورة')
        return pending

    @staticmethod
    def get_pending_image(image_id):
        return get_or_404(PendingImage, image_id, 'Pending image', 'الصورة المعلقة غير موجودة')

    @staticmethod
    def review_pending_image(image_id, action, reviewer, notes=None):
        """
        Approve or reject an uploaded image.

        Returns ``(pending, photo)``; *photo* is ``None`` for rejections.
        """
        if action not in IMAGE_REVIEW_ACTIONS:
            raise ValidationError('Invalid action', 'إجراء غير صالح',
                                  field_errors={'action': 'Must be approve or reject'})
        if action == 'reject' and not notes:
            raise ValidationError('Review notes are required when rejecting',
                                  'ملاحظات المراجعة مطلوبة عند الرفض',
                                  field_errors={'reviewNotes': 'Required when rejecting'})

        pending = ImageService.get_pending_image(image_id)
        if pending.review_status != REVIEW_PENDING:
            raise ConflictError('This image has already been reviewed', 'تمت مراجعة هذه الصورة بالفعل')
        if action == 'approve' and pending.member_id:
            _require_member(pending.member_id)

        new_status = REVIEW_APPROVED if action == 'approve' else REVIEW_REJECTED
        photo = None
        try:
            claimed = PendingImage.query.filter_by(
                id=pending.id, review_status=REVIEW_PENDING
            ).update({
                'review_status': new_status,
                'reviewed_by_id': reviewer.id,
                'reviewed_by_name': reviewer.name_arabic,
                'reviewed_at': utcnow(),
                'review_notes': notes or None,
            }, synchronize_session='fetch')
            if claimed != 1:
                db.session.rollback()
                raise ConflictError('This image has already been reviewed', 'تمت مراجعة هذه الصورة بالفعل')

            if action == 'approve':
                photo = ImageService._publish(pending)
                pending.approved_photo_id = photo.id

            log_activity(
                f'IMAGE_{new_status}', CATEGORY_IMAGE,
                f'{new_status.title()} photo upload {pending.id}',
                target_type='PENDING_IMAGE', target_id=pending.id, target_name=pending.title,
                details={'photoId': photo.id if photo else None, 'memberId': pending.member_id,
                         'reviewNotes': notes},
                user=reviewer,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f'Failed to review pending image {image_id}')
            raise DatabaseError('Failed to review image', 'فشل في مراجعة الصورة')

        current_app.logger.info(f'Pending image {pending.id} {new_status} by user {reviewer.id}')
        return pending, photo

    @staticmethod
    def _publish(pending):
        """Copy an approved upload into the gallery; flushed, not committed."""
        is_profile = pending.category == 'profile' and bool(pending.member_id)
        if is_profile:
            MemberPhoto.query.filter_by(member_id=pending.member_id, is_profile_photo=True) \
                .update({'is_profile_photo': False}, synchronize_session='fetch')
        photo = MemberPhoto(
            image_data=pending.image_data,
            thumbnail_data=pending.thumbnail_data,
            category=pending.category,
            title=pending.title,
            title_ar=pending.title_ar,
            caption=pending.caption,
            caption_ar=pending.caption_ar,
            year=pending.year,
            member_id=pending.member_id,
            tagged_member_ids=pending.tagged_member_ids,
            is_family_album=not pending.member_id,
            is_profile_photo=is_profile,
            uploaded_by_id=pending.uploaded_by_id,
            uploaded_by_name=pending.uploaded_by_name,
            original_pending_id=pending.id,
        )
        db.session.add(photo)
        db.session.flush()
        return photo

    @staticmethod
    def delete_pending_image(image_id, user):
        pending = ImageService.get_pending_image(image_id)
        db.session.delete(pending)
        log_activity(
            'IMAGE_PENDING_DELETED', CATEGORY_IMAGE, f'Deleted photo upload {image_id}',
            target_type='PENDING_IMAGE', target_id=image_id, target_name=pending.title,
            details={'reviewStatus': pending.review_status}, user=user,
        )
        db.session.commit()

    # ------------------------------------------------------------------
    # Gallery
    # ------------------------------------------------------------------

    @staticmethod
    def get_photo(photo_id):
        return get_or_404(MemberPhoto, photo_id, 'Photo', 'الصورة غير موجودة')

    @staticmethod
    def gallery_query(family_only=False, category=None, year=None, uploaded_by=None):
        query = MemberPhoto.query.filter(MemberPhoto.is_public.is_(True))
        if family_only:
            query = query.filter(MemberPhoto.is_family_album.is_(True))
        if category:
            query = query.filter(MemberPhoto.category == category)
        if year:
            query = query.filter(MemberPhoto.year == year)
        if uploaded_by:
            query = query.filter(MemberPhoto.uploaded_by_name == uploaded_by)
        return query.order_by(MemberPhoto.created_at.desc(), MemberPhoto.id.desc())

    @staticmethod
    def member_photos_query(member_id, category=None):
        query = MemberPhoto.query.filter(MemberPhoto.member_id == member_id)
        if category:
            query = query.filter(MemberPhoto.category == category)
        return query.order_by(MemberPhoto.is_profile_photo.desc(), MemberPhoto.display_order,
                              MemberPhoto.created_at.desc())

    @staticmethod
    def get_profile_photo(member_id):
        return MemberPhoto.query.filter_by(member_id=member_id, is_profile_photo=True).first()

    @staticmethod
    def update_photo(photo_id, changes, user, set_as_profile=False):
        """Edit photo metadata; *changes* are MemberPhoto column values."""
        photo = ImageService.get_photo(photo_id)
        if changes.get('member_id'):
            _require_member(changes['member_id'])
        for attr, value in changes.items():
            setattr(photo, attr, value)
        if 'member_id' in changes:
            photo.is_family_album = not photo.member_id
        if set_as_profile:
            ImageService.set_profile_photo(photo)

        log_activity(
            'PHOTO_UPDATED', CATEGORY_IMAGE, f'Edited photo {photo.id}',
            target_type='MEMBER_PHOTO', target_id=photo.id, target_name=photo.title,
            details={'fields': sorted(changes), 'setAsProfile': bool(set_as_profile)}, user=user,
        )
        db.session.commit()
        return photo

    @staticmethod
    def set_profile_photo(photo):
        """Make *photo* its member's only profile photo (not committed)."""
        if not photo.member_id:
            raise ValidationError('Only a member photo can be a profile photo',
                                  'يجب ربط الصورة بعضو لتكون صورة شخصية')
        MemberPhoto.query.filter(
            MemberPhoto.member_id == photo.member_id,
            MemberPhoto.id != photo.id,
            MemberPhoto.is_profile_photo.is_(True),
        ).update({'is_profile_photo': False}, synchronize_session='fetch')
        photo.is_profile_photo = True

    @staticmethod
    def delete_photo(photo_id, user):
        photo = ImageService.get_photo(photo_id)
        db.session.delete(photo)
        log_activity(
            'PHOTO_DELETED', CATEGORY_IMAGE, f'Deleted photo {photo_id}',
            target_type='MEMBER_PHOTO', target_id=photo_id, target_name=photo.title,
            details={'memberId': photo.member_id}, user=user,
        )
        db.session.commit()

    @staticmethod
    def get_image_stats():
        by_status = dict(
            db.session.query(PendingImage.review_status, func.count(PendingImage.id))
            .group_by(PendingImage.review_status).all()
        )
        by_category = [
            {'category': category, 'count': count}
            for category, count in db.session.query(MemberPhoto.category, func.count(MemberPhoto.id))
            .group_by(MemberPhoto.category).order_by(MemberPhoto.category).all()
        ]
        return {
            'pendingCount': by_status.get(REVIEW_PENDING, 0),
            'approvedCount': by_status.get(REVIEW_APPROVED, 0),
            'rejectedCount': by_status.get(REVIEW_REJECTED, 0),
            'totalPhotos': MemberPhoto.query.count(),
            'familyAlbumCount': MemberPhoto.query.filter(MemberPhoto.is_family_album.is_(True)).count(),
            'byCategory': by_category,
        }
