"""
Image Routes
Photo uploads, the photo review queue and the family gallery
"""
from flask import current_app, request
from flask_login import current_user, login_required

from . import images_bp
from .forms import ImageUploadForm, ImageReviewForm, PhotoEditForm
from extensions import limiter
from models.images import PendingImage, IMAGE_CATEGORIES
from models.pending import REVIEW_STATUSES
from services.image_service import ImageService
from utils.db_helpers import paginate
from utils.errors import ValidationError
from utils.forms import validate_json
from utils.permissions import ADMIN_ROLES, Permission, require_permission, require_role
from utils.responses import json_success, get_json_body, client_info


def _page_args():
    return request.args.get('page', 1, type=int), request.args.get('limit', 20, type=int)


def _category_arg():
    category = request.args.get('category')
    if category and category not in IMAGE_CATEGORIES:
        raise ValidationError('Invalid category', 'تصنيف غير صالح')
    return category


def _tagged_member_ids(data):
    ids = data.get('taggedMemberIds')
    if ids is None:
        return None
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise ValidationError('taggedMemberIds must be a list of member ids', 'قائمة الأعضاء غير صالحة',
                              field_errors={'taggedMemberIds': 'Expected a list of strings'})
    return ids


# ── Upload (public) ───────────────────────────────────────────────────────────

@images_bp.route('/upload', methods=['POST'])
@limiter.limit(lambda: current_app.config['RATELIMIT_IMAGE_UPLOAD'])
def upload_image():
    data = get_json_body()
    form = validate_json(ImageUploadForm, data)
    uploader = current_user._get_current_object() if current_user.is_authenticated else None

    uploaded_by_name = (form.uploaderName.data or '').strip() or getattr(uploader, 'name_arabic', None)
    if not uploaded_by_name:
        raise ValidationError('Uploader name is required', 'اسم المُحمّل مطلوب',
                              field_errors={'uploaderName': 'Required'})

    ip_address, _ = client_info()
    pending = ImageService.upload(
        form.pending_values(),
        form.imageData.data,
        uploaded_by_name,
        tagged_member_ids=_tagged_member_ids(data),
        uploader=uploader,
        ip_address=ip_address,
    )
    return json_success('Image uploaded and awaiting approval', 'تم رفع الصورة وهي بانتظار الموافقة',
                        status=201, pendingImage=pending.to_dict(include_image=False))


# ── Review queue ──────────────────────────────────────────────────────────────

@images_bp.route('/pending', methods=['GET'])
@login_required
def list_pending_images():
    require_role(*ADMIN_ROLES)
    query = PendingImage.query
    status = request.args.get('status', '').upper()
    if status:
        if status not in REVIEW_STATUSES:
            raise ValidationError('Invalid status filter', 'مرشح الحالة غير صالح')
        query = query.filter(PendingImage.review_status == status)
    category = _category_arg()
    if category:
        query = query.filter(PendingImage.category == category)
    member_id = request.args.get('memberId')
    if member_id:
        query = query.filter(PendingImage.member_id == member_id)
    query = query.order_by(PendingImage.uploaded_at.desc(), PendingImage.id.desc())

    images, pagination = paginate(query, *_page_args())
    payload = {'images': [i.to_dict(include_image=False) for i in images], 'pagination': pagination}
    if request.args.get('includeStats') == 'true':
        payload['stats'] = ImageService.get_image_stats()
    return json_success(**payload)


@images_bp.route('/pending/<int:image_id>', methods=['GET'])
@login_required
def get_pending_image(image_id):
    require_role(*ADMIN_ROLES)
    return json_success(pendingImage=ImageService.get_pending_image(image_id).to_dict())


@images_bp.route('/pending/<int:image_id>', methods=['PATCH'])
@login_required
def review_pending_image(image_id):
    user = require_role(*ADMIN_ROLES)
    form = validate_json(ImageReviewForm)
    pending, photo = ImageService.review_pending_image(
        image_id, form.action.data, user, form.reviewNotes.data or None
    )
    if photo is not None:
        return json_success('Image approved', 'تمت الموافقة على الصورة',
                            pendingImage=pending.to_dict(include_image=False),
                            photo=photo.to_dict(include_image=False))
    return json_success('Image rejected', 'تم رفض الصورة', pendingImage=pending.to_dict(include_image=False))


@images_bp.route('/pending/<int:image_id>', methods=['DELETE'])
@login_required
def delete_pending_image(image_id):
    user = require_role(*ADMIN_ROLES)
    ImageService.delete_pending_image(image_id, user)
    return json_success('Pending image deleted', 'تم حذف الصورة المعلقة')


# ── Gallery ───────────────────────────────────────────────────────────────────

@images_bp.route('/gallery', methods=['GET'])
@login_required
def gallery():
    require_permission(Permission.VIEW_MEMBER_PHOTOS)
    view = request.args.get('view', 'all')
    if view == 'stats':
        return json_success(stats=ImageService.get_image_stats())
    if view not in ('all', 'family'):
        raise ValidationError('Invalid view', 'طريقة العرض غير صالحة')

    query = ImageService.gallery_query(
        family_only=view == 'family',
        category=_category_arg(),
        year=request.args.get('year', type=int),
        uploaded_by=request.args.get('uploadedBy'),
    )
    photos, pagination = paginate(query, *_page_args())
    return json_success(photos=[p.to_dict(include_image=False) for p in photos], pagination=pagination)


@images_bp.route('/member/<member_id>', methods=['GET'])
@login_required
def member_photos(member_id):
    require_permission(Permission.VIEW_MEMBER_PHOTOS)
    profile = ImageService.get_profile_photo(member_id)
    if request.args.get('view') == 'profile':
        return json_success(profilePhoto=profile.to_dict() if profile else None)

    query = ImageService.member_photos_query(member_id, category=_category_arg())
    photos, pagination = paginate(query, *_page_args())
    return json_success(
        photos=[p.to_dict(include_image=False) for p in photos],
        pagination=pagination,
        profilePhotoId=profile.id if profile else None,
    )


@images_bp.route('/photo/<int:photo_id>', methods=['GET'])
@login_required
def get_photo(photo_id):
    require_permission(Permission.VIEW_MEMBER_PHOTOS)
    return json_success(photo=ImageService.get_photo(photo_id).to_dict())


@images_bp.route('/photo/<int:photo_id>', methods=['PATCH'])
@login_required
def update_photo(photo_id):
    user = require_role(*ADMIN_ROLES)
    data = get_json_body()
    form = validate_json(PhotoEditForm, data)
    photo = ImageService.update_photo(photo_id, form.edit_values(list(data.keys())), user,
                                      set_as_profile=form.setAsProfile.data)
    return json_success('Photo updated', 'تم تحديث الصورة', photo=photo.to_dict(include_image=False))


@images_bp.route('/photo/<int:photo_id>', methods=['DELETE'])
@login_required
def delete_photo(photo_id):
    user = require_role(*ADMIN_ROLES)
    ImageService.delete_photo(photo_id, user)
    return json_success('Photo deleted', 'تم حذف الصورة')
