"""
Tests for photo uploads, the photo review queue and the gallery.

An upload makes exactly one terminal review transition, and only an
approval publishes a MemberPhoto.
"""
import pytest

from extensions import db
from models.activity_log import ActivityLog
from models.images import PendingImage, MemberPhoto
from services.image_service import ImageService, validate_image_data
from utils.errors import ConflictError, ValidationError

PNG = 'data:image/png;base64,iVBORw0KGgo='


def _upload(member_id=None, category='memory', **extra):
    values = {'category': category, 'member_id': member_id}
    values.update(extra)
    return ImageService.upload(values, PNG, 'Nasser')


# ---------------------------------------------------------------------------
# Image data
# ---------------------------------------------------------------------------

class TestImageData:
    def test_valid_png(self, app):
        assert validate_image_data(PNG) == ('image/png', 8)

    @pytest.mark.parametrize('data_url', [
        '',
        'iVBORw0KGgo=',
        'data:text/plain;base64,aGVsbG8=',
        'data:image/bmp;base64,iVBORw0KGgo=',
        'data:image/png;base64,@@not-base64@@',
    ])
    def test_rejected(self, app, data_url):
        with pytest.raises(ValidationError) as exc:
            validate_image_data(data_url)
        assert 'imageData' in exc.value.field_errors

    def test_size_limit(self, app, monkeypatch):
        monkeypatch.setitem(app.config, 'MAX_IMAGE_BYTES', 4)
        with pytest.raises(ValidationError, match='too large'):
            validate_image_data(PNG)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

class TestUpload:
    def test_upload_is_pending(self, app, make_member):
        member = make_member('P001', first_name='Saad')
        pending = _upload('P001', title='Wedding')
        assert pending.review_status == 'PENDING'
        assert pending.member_name == member.display_name
        assert pending.uploaded_by_name == 'Nasser'
        assert MemberPhoto.query.count() == 0
        assert ActivityLog.query.filter_by(action='IMAGE_UPLOADED').count() == 1

    def test_unknown_member_rejected(self, app):
        with pytest.raises(ValidationError) as exc:
            _upload('P404')
        assert 'memberId' in exc.value.field_errors
        assert PendingImage.query.count() == 0

    def test_unknown_tagged_member_rejected(self, app, make_member):
        make_member('P001')
        with pytest.raises(ValidationError) as exc:
            ImageService.upload({'category': 'memory'}, PNG, 'Nasser', tagged_member_ids=['P001', 'P404'])
        assert 'taggedMemberIds' in exc.value.field_errors

    def test_tagged_members_kept(self, app, make_member):
        make_member('P001')
        make_member('P002', father_id='P001', generation=2)
        pending = ImageService.upload({'category': 'memory'}, PNG, 'Nasser', tagged_member_ids=['P001', 'P002'])
        assert pending.get_tagged_member_ids() == ['P001', 'P002']


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

class TestReview:
    def test_approve_publishes_photo(self, app, admin, make_member):
        make_member('P001')
        pending = _upload('P001', year=1990)
        pending, photo = ImageService.review_pending_image(pending.id, 'approve', admin)

        assert pending.review_status == 'APPROVED'
        assert pending.reviewed_by_id == admin.id
        assert pending.approved_photo_id == photo.id
        assert photo.member_id == 'P001'
        assert photo.year == 1990
        assert photo.original_pending_id == pending.id
        assert photo.is_family_album is False
        assert ActivityLog.query.filter_by(action='IMAGE_APPROVED').count() == 1

    def test_photo_without_member_joins_family_album(self, app, admin):
        pending = _upload(category='historical')
        _, photo = ImageService.review_pending_image(pending.id, 'approve', admin)
        assert photo.is_family_album is True
        assert photo.is_profile_photo is False

    def test_new_profile_photo_replaces_old(self, app, admin, make_member):
        make_member('P001')
        first = _upload('P001', category='profile')
        _, old = ImageService.review_pending_image(first.id, 'approve', admin)
        second = _upload('P001', category='profile')
        _, new = ImageService.review_pending_image(second.id, 'approve', admin)

        db.session.refresh(old)
        assert old.is_profile_photo is False
        assert new.is_profile_photo is True
        assert ImageService.get_profile_photo('P001').id == new.id

    def test_reject_requires_notes(self, app, admin):
        pending = _upload()
        with pytest.raises(ValidationError) as exc:
            ImageService.review_pending_image(pending.id, 'reject', admin)
        assert 'reviewNotes' in exc.value.field_errors
        assert db.session.get(PendingImage, pending.id).review_status == 'PENDING'

    def test_reject_publishes_nothing(self, app, admin):
        pending = _upload()
        pending, photo = ImageService.review_pending_image(pending.id, 'reject', admin, 'Blurry')
        assert photo is None
        assert pending.review_status == 'REJECTED'
        assert pending.review_notes == 'Blurry'
        assert MemberPhoto.query.count() == 0

    def test_second_review_conflicts(self, app, admin):
        pending = _upload()
        ImageService.review_pending_image(pending.id, 'approve', admin)
        with pytest.raises(ConflictError):
            ImageService.review_pending_image(pending.id, 'reject', admin, 'Changed my mind')
        assert MemberPhoto.query.count() == 1

    def test_lost_claim_conflicts(self, app, admin, monkeypatch):
        pending = _upload()
        original = ImageService.get_pending_image

        def reviewed_elsewhere(image_id):
            # Another reviewer finishes between the read and the claim
            record = original(image_id)
            PendingImage.query.filter_by(id=image_id).update({'review_status': 'REJECTED'}, synchronize_session=False)
            return record

        monkeypatch.setattr(ImageService, 'get_pending_image', staticmethod(reviewed_elsewhere))
        with pytest.raises(ConflictError):
            ImageService.review_pending_image(pending.id, 'approve', admin)
        assert MemberPhoto.query.count() == 0

    def test_approval_with_missing_member_refused(self, app, admin, make_member):
        member = make_member('P001')
        pending = _upload('P001')
        db.session.delete(member)
        db.session.commit()

        with pytest.raises(ValidationError):
            ImageService.review_pending_image(pending.id, 'approve', admin)
        assert db.session.get(PendingImage, pending.id).review_status == 'PENDING'
        assert MemberPhoto.query.count() == 0


# ---------------------------------------------------------------------------
# Gallery
# ---------------------------------------------------------------------------

class TestGallery:
    def test_private_photos_hidden(self, app, admin):
        _, shown = ImageService.review_pending_image(_upload().id, 'approve', admin)
        _, hidden = ImageService.review_pending_image(_upload().id, 'approve', admin)
        ImageService.update_photo(hidden.id, {'is_public': False}, admin)
        assert [p.id for p in ImageService.gallery_query().all()] == [shown.id]

    def test_set_as_profile_needs_member(self, app, admin):
        _, photo = ImageService.review_pending_image(_upload().id, 'approve', admin)
        with pytest.raises(ValidationError):
            ImageService.update_photo(photo.id, {}, admin, set_as_profile=True)

    def test_moving_photo_to_member_leaves_album(self, app, admin, make_member):
        make_member('P001')
        _, photo = ImageService.review_pending_image(_upload().id, 'approve', admin)
        photo = ImageService.update_photo(photo.id, {'member_id': 'P001'}, admin, set_as_profile=True)
        assert photo.is_family_album is False
        assert photo.is_profile_photo is True

    def test_stats(self, app, admin, make_member):
        make_member('P001')
        ImageService.review_pending_image(_upload('P001').id, 'approve', admin)
        ImageService.review_pending_image(_upload(category='historical').id, 'approve', admin)
        ImageService.review_pending_image(_upload().id, 'reject', admin, 'Duplicate')
        _upload()

        stats = ImageService.get_image_stats()
        assert stats['pendingCount'] == 1
        assert stats['approvedCount'] == 2
        assert stats['rejectedCount'] == 1
        assert stats['totalPhotos'] == 2
        assert stats['familyAlbumCount'] == 1
        assert stats['byCategory'] == [
            {'category': 'historical', 'count': 1},
            {'category': 'memory', 'count': 1},
        ]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

class TestImageRoutes:
    def _post(self, client, **overrides):
        body = {'imageData': PNG, 'uploaderName': 'Nasser', 'title': 'Eid 1985'}
        body.update(overrides)
        return client.post('/api/images/upload', json=body)

    def test_public_upload(self, client):
        resp = self._post(client)
        assert resp.status_code == 201
        image = resp.get_json()['pendingImage']
        assert image['reviewStatus'] == 'PENDING'
        assert image['category'] == 'memory'
        assert 'imageData' not in image

    def test_upload_needs_uploader_name(self, client):
        resp = self._post(client, uploaderName=None)
        assert resp.status_code == 400
        assert 'uploaderName' in resp.get_json()['details']['fieldErrors']

    def test_logged_in_uploader_named_from_account(self, client, member_user, auth_headers):
        resp = client.post('/api/images/upload', json={'imageData': PNG}, headers=auth_headers(member_user))
        assert resp.status_code == 201
        assert resp.get_json()['pendingImage']['uploadedByName'] == member_user.name_arabic

    def test_upload_validation(self, client):
        resp = self._post(client, category='selfie', year=1700)
        assert resp.status_code == 400
        assert set(resp.get_json()['details']['fieldErrors']) == {'category', 'year'}

    def test_member_cannot_see_queue(self, client, member_user, auth_headers):
        resp = client.get('/api/images/pending', headers=auth_headers(member_user))
        assert resp.status_code == 403

    def test_review_flow(self, client, admin, auth_headers):
        image_id = self._post(client).get_json()['pendingImage']['id']
        headers = auth_headers(admin)

        queue = client.get('/api/images/pending?status=pending&includeStats=true', headers=headers).get_json()
        assert [i['id'] for i in queue['images']] == [image_id]
        assert queue['stats']['pendingCount'] == 1

        resp = client.patch(f'/api/images/pending/{image_id}', json={'action': 'approve'}, headers=headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body['pendingImage']['approvedPhotoId'] == body['photo']['id']

        again = client.patch(f'/api/images/pending/{image_id}',
                             json={'action': 'reject', 'reviewNotes': 'No'}, headers=headers)
        assert again.status_code == 409

    def test_reject_without_notes_is_400(self, client, admin, auth_headers):
        image_id = self._post(client).get_json()['pendingImage']['id']
        resp = client.patch(f'/api/images/pending/{image_id}', json={'action': 'reject'},
                            headers=auth_headers(admin))
        assert resp.status_code == 400

    def test_gallery_requires_login(self, client):
        assert client.get('/api/images/gallery').status_code == 401

    def test_family_gallery(self, client, admin, member_user, auth_headers, make_member):
        make_member('P001')
        ImageService.review_pending_image(_upload('P001').id, 'approve', admin)
        _, album = ImageService.review_pending_image(_upload().id, 'approve', admin)

        resp = client.get('/api/images/gallery?view=family', headers=auth_headers(member_user))
        assert resp.status_code == 200
        body = resp.get_json()
        assert [p['id'] for p in body['photos']] == [album.id]
        assert body['pagination']['total'] == 1

    def test_member_photos_and_profile(self, client, admin, member_user, auth_headers, make_member):
        make_member('P001')
        _, photo = ImageService.review_pending_image(_upload('P001').id, 'approve', admin)
        headers = auth_headers(admin)

        resp = client.patch(f'/api/images/photo/{photo.id}', json={'setAsProfile': True, 'displayOrder': 2},
                            headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()['photo']['isProfilePhoto'] is True
        assert resp.get_json()['photo']['displayOrder'] == 2

        member_headers = auth_headers(member_user)
        listing = client.get('/api/images/member/P001', headers=member_headers).get_json()
        assert listing['profilePhotoId'] == photo.id
        profile = client.get('/api/images/member/P001?view=profile', headers=member_headers).get_json()
        assert profile['profilePhoto']['imageData'] == PNG

    def test_member_cannot_edit_photo(self, client, admin, member_user, auth_headers):
        _, photo = ImageService.review_pending_image(_upload().id, 'approve', admin)
        resp = client.delete(f'/api/images/photo/{photo.id}', headers=auth_headers(member_user))
        assert resp.status_code == 403
        assert client.delete(f'/api/images/photo/{photo.id}', headers=auth_headers(admin)).status_code == 200
        assert MemberPhoto.query.count() == 0
