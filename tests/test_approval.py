"""
Tests for ApprovalService: pending member review and branch entry links.

Every pending record must make exactly one terminal transition, and an
approval must create exactly one FamilyMember.
"""
import pytest

from extensions import db
from models.activity_log import ActivityLog
from models.members import FamilyMember
from models.pending import PendingMember
from services.approval_service import ApprovalService
from utils.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError


@pytest.fixture
def pending(app):
    return ApprovalService.submit_pending_member({
        'first_name': 'Abdullah',
        'gender': 'Male',
        'generation': 2,
        'branch': 'Fahad',
        'city': 'Riyadh',
    })


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

class TestSubmit:
    def test_submission_is_pending(self, app, pending):
        assert pending.id is not None
        assert pending.review_status == 'PENDING'
        assert pending.approved_member_id is None

    def test_submission_is_logged(self, app, pending):
        entry = ActivityLog.query.filter_by(action='PENDING_MEMBER_SUBMITTED').one()
        assert entry.target_id == str(pending.id)
        assert entry.user_name == 'SYSTEM'

    def test_submitter_recorded(self, app, member_user):
        p = ApprovalService.submit_pending_member(
            {'first_name': 'Noura', 'gender': 'Female'}, submitter=member_user
        )
        assert p.submitted_by_id == member_user.id

    def test_unknown_father_rejected(self, app):
        with pytest.raises(ValidationError) as exc:
            ApprovalService.submit_pending_member(
                {'first_name': 'Sultan', 'gender': 'Male', 'proposed_father_id': 'P999'}
            )
        assert 'fatherId' in exc.value.field_errors
        assert PendingMember.query.count() == 0

    def test_known_father_kept(self, app, admin, make_member):
        make_member('P001')
        p = ApprovalService.submit_pending_member(
            {'first_name': 'Sultan', 'gender': 'Male', 'generation': 2, 'proposed_father_id': 'P001'}
        )
        _, member = ApprovalService.review_pending_member(p.id, 'approve', admin)
        assert member.id == 'P002'
        assert member.father_id == 'P001'


# ---------------------------------------------------------------------------
# Approve / reject
# ---------------------------------------------------------------------------

class TestReview:
    def test_approve_creates_member(self, app, admin, pending):
        reviewed, member = ApprovalService.review_pending_member(pending.id, 'approve', admin, 'Looks good')

        assert reviewed.review_status == 'APPROVED'
        assert reviewed.reviewed_by == admin.id
        assert reviewed.review_note == 'Looks good'
        assert member.id == 'P001'
        assert reviewed.approved_member_id == member.id
        assert member.first_name == 'Abdullah'
        assert member.city == 'Riyadh'
        assert member.sons_count == 0
        assert member.daughters_count == 0
        assert member.created_by == str(admin.id)

    def test_approve_uses_next_sequential_id(self, app, admin, make_member, pending):
        make_member('P001')
        make_member('P007', father_id='P001', generation=2)
        _, member = ApprovalService.review_pending_member(pending.id, 'approve', admin)
        assert member.id == 'P008'

    def test_approve_is_logged(self, app, admin, pending):
        ApprovalService.review_pending_member(pending.id, 'approve', admin)
        entry = ActivityLog.query.filter_by(action='PENDING_MEMBER_APPROVED').one()
        assert entry.user_id == admin.id
        assert 'P001' in entry.details

    def test_reject_creates_no_member(self, app, admin, pending):
        reviewed, member = ApprovalService.review_pending_member(pending.id, 'reject', admin, 'Duplicate')
        assert member is None
        assert reviewed.review_status == 'REJECTED'
        assert reviewed.review_note == 'Duplicate'
        assert FamilyMember.query.count() == 0

    def test_second_review_conflicts(self, app, admin, pending):
        ApprovalService.review_pending_member(pending.id, 'approve', admin)
        with pytest.raises(ConflictError):
            ApprovalService.review_pending_member(pending.id, 'approve', admin)
        with pytest.raises(ConflictError):
            ApprovalService.review_pending_member(pending.id, 'reject', admin)
        assert FamilyMember.query.count() == 1

    def test_lost_claim_creates_nothing(self, app, admin, pending):
        """Another reviewer finished between our status check and the update."""
        PendingMember.query.filter_by(id=pending.id).update({'review_status': 'REJECTED'})
        db.session.commit()

        with pytest.raises(ConflictError):
            ApprovalService._approve(pending, admin, None)
        assert FamilyMember.query.count() == 0
        assert ActivityLog.query.filter_by(action='PENDING_MEMBER_APPROVED').count() == 0

    def test_approval_with_missing_father_refused(self, app, admin, make_member):
        make_member('P001')
        p = ApprovalService.submit_pending_member(
            {'first_name': 'Sultan', 'gender': 'Male', 'generation': 2, 'proposed_father_id': 'P001'}
        )
        # Father removed after submission, e.g. by a snapshot restore
        FamilyMember.query.filter_by(id='P001').delete()
        db.session.commit()

        with pytest.raises(ValidationError):
            ApprovalService.review_pending_member(p.id, 'approve', admin)
        assert db.session.get(PendingMember, p.id).review_status == 'PENDING'
        assert FamilyMember.query.count() == 0

        reviewed, _ = ApprovalService.review_pending_member(p.id, 'reject', admin, 'Father gone')
        assert reviewed.review_status == 'REJECTED'

    def test_invalid_action(self, app, admin, pending):
        with pytest.raises(ValidationError):
            ApprovalService.review_pending_member(pending.id, 'maybe', admin)

    def test_missing_record(self, app, admin):
        with pytest.raises(NotFoundError):
            ApprovalService.review_pending_member(9999, 'approve', admin)


class TestBranchLeaderReview:
    def test_leader_reviews_own_branch(self, app, branch_leader, pending):
        reviewed, member = ApprovalService.review_pending_member(pending.id, 'approve', branch_leader)
        assert reviewed.review_status == 'APPROVED'
        assert member.branch == 'Fahad'

    def test_leader_blocked_outside_branch(self, app, branch_leader):
        other = ApprovalService.submit_pending_member(
            {'first_name': 'Khalid', 'gender': 'Male', 'branch': 'Saleh'}
        )
        with pytest.raises(AuthorizationError):
            ApprovalService.review_pending_member(other.id, 'approve', branch_leader)
        assert db.session.get(PendingMember, other.id).review_status == 'PENDING'


# ---------------------------------------------------------------------------
# Branch entry links
# ---------------------------------------------------------------------------

class TestBranchLinks:
    def test_submission_through_link(self, app, admin, make_member):
        make_member('P001')
        make_member('P002', first_name='Fahad', father_id='P001', generation=2)
        link, created = ApprovalService.create_branch_link('P002', admin)
        assert created is True

        p = ApprovalService.submit_pending_member(
            {'first_name': 'Sultan', 'gender': 'Male', 'branch': 'Ignored'},
            branch_token=link.token,
        )
        assert p.branch == 'Fahad'
        assert p.proposed_father_id == 'P002'
        assert p.generation == 3
        assert p.submitted_via == link.token
        assert link.use_count == 1

    def test_existing_active_link_reused(self, app, admin, make_member):
        make_member('P001')
        first, _ = ApprovalService.create_branch_link('P001', admin)
        second, created = ApprovalService.create_branch_link('P001', admin)
        assert created is False
        assert second.id == first.id

    def test_deactivated_link_rejected(self, app, admin, make_member):
        make_member('P001')
        link, _ = ApprovalService.create_branch_link('P001', admin)
        ApprovalService.deactivate_branch_link(link.id, admin)
        with pytest.raises(ValidationError):
            ApprovalService.submit_pending_member(
                {'first_name': 'Sultan', 'gender': 'Male'}, branch_token=link.token
            )

    def test_unknown_token_rejected(self, app):
        with pytest.raises(ValidationError):
            ApprovalService.submit_pending_member(
                {'first_name': 'Sultan', 'gender': 'Male'}, branch_token='nope'
            )

    def test_leader_cannot_link_other_branch(self, app, branch_leader, make_member):
        make_member('P001', branch='Saleh')
        with pytest.raises(AuthorizationError):
            ApprovalService.create_branch_link('P001', branch_leader)
