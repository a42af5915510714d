"""Photo upload, review and metadata edit bodies"""
from wtforms import BooleanField, IntegerField, StringField
from wtforms.validators import AnyOf, DataRequired, Email, Length, NumberRange, Optional, ValidationError

from models.images import IMAGE_CATEGORIES
from services.image_service import IMAGE_REVIEW_ACTIONS
from services.update_request_service import sanitize_string
from utils.db_helpers import utcnow
from utils.forms import ApiForm

# JSON key -> PendingImage / MemberPhoto column
PHOTO_COLUMNS = {
    'category': 'category',
    'title': 'title',
    'titleAr': 'title_ar',
    'caption': 'caption',
    'captionAr': 'caption_ar',
    'year': 'year',
    'memberId': 'member_id',
}
TEXT_KEYS = ('title', 'titleAr', 'caption', 'captionAr')


def photo_year(form, field):
    """Photos are dated between 1800 and the current year."""
    if field.data is not None and not 1800 <= field.data <= utcnow().year:
        raise ValidationError(f'Year must be between 1800 and {utcnow().year}')


class PhotoFieldsForm(ApiForm):
    category = StringField('Category', validators=[
        Optional(),
        AnyOf(IMAGE_CATEGORIES, message='Invalid category')
    ])
    title = StringField('Title', validators=[Optional(), Length(max=255)])
    titleAr = StringField('Title (Arabic)', validators=[Optional(), Length(max=255)])
    caption = StringField('Caption', validators=[Optional(), Length(max=2000)])
    captionAr = StringField('Caption (Arabic)', validators=[Optional(), Length(max=2000)])
    year = IntegerField('Year', validators=[Optional(), photo_year])
    memberId = StringField('Member', validators=[Optional(), Length(max=20)])

    def column_values(self, keys=None):
        """Column values with HTML stripped from text; restricted to *keys* when given."""
        keys = PHOTO_COLUMNS if keys is None else [k for k in keys if k in PHOTO_COLUMNS]
        values = {}
        for key in keys:
            value = self[key].data
            if key in TEXT_KEYS:
                value = sanitize_string(value) or None
            elif isinstance(value, str):
                value = value.strip() or None
            if key == 'category' and value is None:
                continue
            values[PHOTO_COLUMNS[key]] = value
        return values


class ImageUploadForm(PhotoFieldsForm):
    imageData = StringField('Image', validators=[DataRequired(message='Image data is required')])
    memberName = StringField('Member Name', validators=[Optional(), Length(max=255)])
    uploaderName = StringField('Uploader Name', validators=[Optional(), Length(max=150)])
    uploaderEmail = StringField('Uploader Email', validators=[Optional(), Email(message='Invalid email address')])

    def pending_values(self):
        values = self.column_values()
        values.setdefault('category', 'memory')
        values['member_name'] = sanitize_string(self.memberName.data) or None
        values['uploaded_by_email'] = (self.uploaderEmail.data or '').strip() or None
        return values


class ImageReviewForm(ApiForm):
    action = StringField('Action', validators=[
        DataRequired(message='Action is required'),
        AnyOf(IMAGE_REVIEW_ACTIONS, message='Action must be approve or reject')
    ])
    reviewNotes = StringField('Review Notes', validators=[Optional(), Length(max=2000)])


class PhotoEditForm(PhotoFieldsForm):
    isPublic = BooleanField('Public', false_values=('false', '0', ''))
    displayOrder = IntegerField('Display Order', validators=[Optional(), NumberRange(min=0)])
    setAsProfile = BooleanField('Set As Profile', false_values=('false', '0', ''))

    def edit_values(self, keys):
        values = self.column_values(keys)
        if 'isPublic' in keys:
            values['is_public'] = self.isPublic.data
        if 'displayOrder' in keys and self.displayOrder.data is not None:
            values['display_order'] = self.displayOrder.data
        return values
