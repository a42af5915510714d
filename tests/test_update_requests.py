"""
Tests for UpdateRequestService: allow-listing, sanitising and review.
"""
import pytest

from extensions import db
from models.members import FamilyMember
from models.update_requests import MemberUpdateRequest
from services.update_request_service import (
    UpdateRequestService, filter_proposed_changes, sanitize_string,
)
from utils.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError


@pytest.fixture
def member(app, make_member):
    return make_member('P001', city='Jeddah', phone='0500000000')


# ---------------------------------------------------------------------------
# Sanitising
# ---------------------------------------------------------------------------

class TestSanitize:
    def test_strips_script_blocks(self):
        assert sanitize_string('Riyadh<script>alert(1)</script>') == 'Riyadh'

    def test_strips_tags(self):
        assert sanitize_string('<b>Engineer</b> ') == 'Engineer'

    def test_empty(self):
        assert sanitize_string(None) == ''

    def test_unknown_fields_dropped(self):
        changes = filter_proposed_changes({'city': 'Riyadh', 'hackField': 'x', 'firstName': 'Changed'})
        assert changes == {'city': 'Riyadh'}


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

class TestSubmit:
    def test_only_allowed_fields_stored(self, app, member_user, member):
        req = UpdateRequestService.submit('P001', {'city': 'Riyadh', 'hackField': 'x'}, member_user)
        assert req.get_proposed_changes() == {'city': 'Riyadh'}
        assert req.status == 'PENDING'
        assert req.member_name == member.display_name
        assert req.submitted_by_email == member_user.email

    def test_nothing_valid_rejected(self, app, member_user, member):
        with pytest.raises(ValidationError):
            UpdateRequestService.submit('P001', {'hackField': 'x'}, member_user)

    def test_photo_only_request_allowed(self, app, member_user, member):
        req = UpdateRequestService.submit('P001', {}, member_user, photo_data='data:image/png;base64,AAAA')
        assert req.proposed_photo_data.startswith('data:image/png')

    def test_unknown_member(self, app, member_user):
        with pytest.raises(NotFoundError):
            UpdateRequestService.submit('P404', {'city': 'Riyadh'}, member_user)

    def test_values_are_typed(self, app, member_user, member):
        req = UpdateRequestService.submit('P001', {'birthYear': '1965', 'city': ' Riyadh '}, member_user)
        assert req.get_proposed_changes() == {'birthYear': 1965, 'city': 'Riyadh'}

    @pytest.mark.parametrize('changes, field', [
        ({'birthYear': 'abc'}, 'birthYear'),
        ({'deathYear': 99999}, 'deathYear'),
        ({'status': 'Zombie'}, 'status'),
        ({'status': ''}, 'status'),
        ({'email': 'not-an-email'}, 'email'),
        ({'city': 'x' * 101}, 'city'),
        ({'city': {'nested': 'Riyadh'}}, 'city'),
        ({'phone': ['0500']}, 'phone'),
    ])
    def test_invalid_values_rejected(self, app, member_user, member, changes, field):
        with pytest.raises(ValidationError) as exc:
            UpdateRequestService.submit('P001', changes, member_user)
        assert field in exc.value.field_errors
        assert MemberUpdateRequest.query.count() == 0


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

class TestReview:
    def _submit(self, user):
        return UpdateRequestService.submit('P001', {'city': 'Riyadh', 'phone': '0555555555'}, user)

    def test_approve_applies_all(self, app, admin, member_user, member):
        req = self._submit(member_user)
        reviewed, applied = UpdateRequestService.review(req.id, 'APPROVE', admin, 'ok')

        assert reviewed.status == 'APPROVED'
        assert applied == ['city', 'phone']
        refreshed = db.session.get(FamilyMember, 'P001')
        assert refreshed.city == 'Riyadh'
        assert refreshed.phone == '0555555555'
        assert refreshed.last_modified_by == str(admin.id)

    def test_partial_approve_applies_subset(self, app, admin, member_user, member):
        req = self._submit(member_user)
        reviewed, applied = UpdateRequestService.review(
            req.id, 'PARTIAL_APPROVE', admin, approved_fields=['city', 'firstName']
        )
        assert reviewed.status == 'PARTIALLY_APPROVED'
        assert applied == ['city']
        refreshed = db.session.get(FamilyMember, 'P001')
        assert refreshed.city == 'Riyadh'
        assert refreshed.phone == '0500000000'

    def test_partial_approve_needs_field_list(self, app, admin, member_user, member):
        req = self._submit(member_user)
        with pytest.raises(ValidationError):
            UpdateRequestService.review(req.id, 'PARTIAL_APPROVE', admin)

    def test_reject_leaves_member(self, app, admin, member_user, member):
        req = self._submit(member_user)
        reviewed, applied = UpdateRequestService.review(req.id, 'REJECT', admin, 'No')
        assert reviewed.status == 'REJECTED'
        assert applied == []
        assert db.session.get(FamilyMember, 'P001').city == 'Jeddah'

    def test_second_review_conflicts(self, app, admin, member_user, member):
        req = self._submit(member_user)
        UpdateRequestService.review(req.id, 'REJECT', admin)
        with pytest.raises(ConflictError):
            UpdateRequestService.review(req.id, 'APPROVE', admin)
        assert db.session.get(FamilyMember, 'P001').city == 'Jeddah'


    def test_invalid_stored_change_is_a_validation_error(self, app, admin, member_user, member):
        req = MemberUpdateRequest(
            member_id='P001', member_name=member.display_name, submitted_by_id=member_user.id,
            proposed_changes='{"birthYear": "abc"}', status='PENDING',
        )
        db.session.add(req)
        db.session.commit()

        with pytest.raises(ValidationError):
            UpdateRequestService.review(req.id, 'APPROVE', admin)
        assert db.session.get(MemberUpdateRequest, req.id).status == 'PENDING'
        assert db.session.get(FamilyMember, 'P001').birth_year is None

    def test_approved_status_stays_in_range(self, app, admin, member_user, member):
        req = UpdateRequestService.submit('P001', {'status': 'Deceased', 'deathYear': 2001}, member_user)
        UpdateRequestService.review(req.id, 'APPROVE', admin)
        refreshed = db.session.get(FamilyMember, 'P001')
        assert refreshed.status == 'Deceased'
        assert refreshed.death_year == 2001


class TestCancel:
    def test_submitter_cancels(self, app, member_user, member):
        req = UpdateRequestService.submit('P001', {'city': 'Riyadh'}, member_user)
        UpdateRequestService.cancel(req.id, member_user)
        assert MemberUpdateRequest.query.count() == 0

    def test_stranger_cannot_cancel(self, app, member_user, branch_leader, member):
        req = UpdateRequestService.submit('P001', {'city': 'Riyadh'}, member_user)
        with pytest.raises(AuthorizationError):
            UpdateRequestService.cancel(req.id, branch_leader)

    def test_reviewed_request_cannot_be_cancelled(self, app, admin, member_user, member):
        req = UpdateRequestService.submit('P001', {'city': 'Riyadh'}, member_user)
        UpdateRequestService.review(req.id, 'APPROVE', admin)
        with pytest.raises(ValidationError):
            UpdateRequestService.cancel(req.id, member_user)
