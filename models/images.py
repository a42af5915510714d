"""
PendingImage and MemberPhoto models.

Uploaded photos wait as ``PendingImage`` rows until a reviewer approves them;
approval copies the image into a ``MemberPhoto``.  A photo without a member is
part of the family album.  At most one photo per member is the profile photo.
"""
from extensions import db
from models.pending import REVIEW_PENDING
from utils.db_helpers import utcnow, isoformat, load_json

IMAGE_CATEGORIES = ('profile', 'memory', 'document', 'historical')
IMAGE_MIME_TYPES = ('image/jpeg', 'image/png', 'image/gif', 'image/webp')


class PendingImage(db.Model):
    __tablename__ = 'pending_images'

    id = db.Column(db.Integer, primary_key=True)
    image_data = db.Column(db.Text, nullable=False)  # base64 data URL
    thumbnail_data = db.Column(db.Text)
    category = db.Column(db.String(20), nullable=False, default='memory')
    title = db.Column(db.String(255))
    title_ar = db.Column(db.String(255))
    caption = db.Column(db.Text)
    caption_ar = db.Column(db.Text)
    year = db.Column(db.Integer)
    member_id = db.Column(db.String(20), index=True)
    member_name = db.Column(db.String(255))
    tagged_member_ids = db.Column(db.Text)  # JSON list

    # Upload
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    uploaded_by_name = db.Column(db.String(150), nullable=False)
    uploaded_by_email = db.Column(db.String(120))
    uploaded_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    ip_address = db.Column(db.String(64))

    # Review
    review_status = db.Column(db.String(20), nullable=False, default=REVIEW_PENDING, index=True)
    reviewed_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    reviewed_by_name = db.Column(db.String(150))
    reviewed_at = db.Column(db.DateTime)
    review_notes = db.Column(db.Text)
    approved_photo_id = db.Column(db.Integer)

    def get_tagged_member_ids(self):
        return load_json(self.tagged_member_ids, [])

    def to_dict(self, include_image=True):
        data = {
            'id': self.id,
            'category': self.category,
            'title': self.title,
            'titleAr': self.title_ar,
            'caption': self.caption,
            'captionAr': self.caption_ar,
            'year': self.year,
            'memberId': self.member_id,
            'memberName': self.member_name,
            'taggedMemberIds': self.get_tagged_member_ids(),
            'uploadedById': self.uploaded_by_id,
            'uploadedByName': self.uploaded_by_name,
            'uploadedByEmail': self.uploaded_by_email,
            'uploadedAt': isoformat(self.uploaded_at),
            'reviewStatus': self.review_status,
            'reviewedByName': self.reviewed_by_name,
            'reviewedAt': isoformat(self.reviewed_at),
            'reviewNotes': self.review_notes,
            'approvedPhotoId': self.approved_photo_id,
            'thumbnailData': self.thumbnail_data or self.image_data,
        }
        if include_image:
            data['imageData'] = self.image_data
        return data

    def __repr__(self):
        return f'<PendingImage {self.id} {self.category} {self.review_status}>'


class MemberPhoto(db.Model):
    __tablename__ = 'member_photos'

    id = db.Column(db.Integer, primary_key=True)
    image_data = db.Column(db.Text, nullable=False)
    thumbnail_data = db.Column(db.Text)
    category = db.Column(db.String(20), nullable=False, default='memory', index=True)
    title = db.Column(db.String(255))
    title_ar = db.Column(db.String(255))
    caption = db.Column(db.Text)
    caption_ar = db.Column(db.Text)
    year = db.Column(db.Integer, index=True)
    member_id = db.Column(db.String(20), index=True)
    tagged_member_ids = db.Column(db.Text)
    is_family_album = db.Column(db.Boolean, nullable=False, default=False)
    is_profile_photo = db.Column(db.Boolean, nullable=False, default=False)
    is_public = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    uploaded_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    uploaded_by_name = db.Column(db.String(150), nullable=False)
    original_pending_id = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def get_tagged_member_ids(self):
        return load_json(self.tagged_member_ids, [])

    def to_dict(self, include_image=True):
        data = {
            'id': self.id,
            'category': self.category,
            'title': self.title,
            'titleAr': self.title_ar,
            'caption': self.caption,
            'captionAr': self.caption_ar,
            'year': self.year,
            'memberId': self.member_id,
            'taggedMemberIds': self.get_tagged_member_ids(),
            'isFamilyAlbum': self.is_family_album,
            'isProfilePhoto': self.is_profile_photo,
            'isPublic': self.is_public,
            'displayOrder': self.display_order,
            'uploadedByName': self.uploaded_by_name,
            'createdAt': isoformat(self.created_at),
            'thumbnailData': self.thumbnail_data or self.image_data,
        }
        if include_image:
            data['imageData'] = self.image_data
        return data

    def __repr__(self):
        return f'<MemberPhoto {self.id} {self.category} member={self.member_id}>'
