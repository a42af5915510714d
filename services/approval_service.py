"""
Approval Service
================
Turns a PendingMember into a live FamilyMember (or rejects it) exactly once.

Review transitions
------------------
  PENDING -> APPROVED   new FamilyMember created, ``approved_member_id`` set
  PENDING -> REJECTED   no member created, review note recorded

The transition is claimed with a conditional UPDATE
(``... WHERE id = :id AND review_status = 'PENDING'``); when no row matches
the record was already reviewed and ``ConflictError`` is raised.  The claim,
the member insert and the activity log entry share one transaction, so a
failed insert leaves the pending record untouched.
"""
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.invites import BranchEntryLink
from models.members import FamilyMember
from models.pending import PendingMember, REVIEW_PENDING, REVIEW_APPROVED, REVIEW_REJECTED
from utils.audit import log_activity, CATEGORY_ADMIN, CATEGORY_MEMBER
from utils.db_helpers import get_or_404, utcnow
from utils.errors import ConflictError, DatabaseError, ValidationError
from utils.permissions import Permission, require_branch_access

REVIEW_ACTIONS = ('approve', 'reject')


def _require_father(father_id):
    """Raise ValidationError unless *father_id* is empty or an existing member."""
    if father_id and db.session.get(FamilyMember, father_id) is None:
        raise ValidationError('Proposed father is not a member of the tree', 'الأب المقترح غير موجود في الشجرة',
                              field_errors={'fatherId': f'Unknown member {father_id}'})


class ApprovalService:

    @staticmethod
    def submit_pending_member(values, branch_token=None, submitter=None, ip_address=None):
        """
        Queue a proposed member for review.

        *values* are PendingMember column values.  With *branch_token* the
        branch and proposed father come from the (active) BranchEntryLink and
        the link's use count is incremented.
        """
        pending = PendingMember(**values)
        pending.submitted_by_id = getattr(submitter, 'id', None)
        pending.ip_address = ip_address

        if branch_token:
            link = BranchEntryLink.query.filter_by(token=branch_token).first()
            if link is None or not link.is_usable():
                raise ValidationError('Invalid or expired branch link', 'رابط الفرع غير صالح أو منتهي')
            head = db.session.get(FamilyMember, link.branch_head_id)
            pending.branch = link.branch or (head.branch if head else pending.branch)
            pending.proposed_father_id = link.branch_head_id
            if head is not None:
                pending.generation = head.generation + 1
            pending.submitted_via = link.token
        _require_father(pending.proposed_father_id)
        if branch_token:
            link.use_count = (link.use_count or 0) + 1

        try:
            db.session.add(pending)
            db.session.flush()
            log_activity(
                'PENDING_MEMBER_SUBMITTED', CATEGORY_MEMBER,
                f'Submitted pending member {pending.display_name}',
                target_type='PENDING_MEMBER', target_id=pending.id, target_name=pending.display_name,
                details={'branch': pending.branch, 'viaLink': bool(branch_token)}, user=submitter,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Failed to store pending member submission')
            raise DatabaseError()
        return pending

    @staticmethod
    def get_pending(pending_id):
        return get_or_404(PendingMember, pending_id, 'Pending member', 'العضو المعلق غير موجود')

    @staticmethod
    def review_pending_member(pending_id, action, reviewer, note=None):
        """
        Approve or reject a pending member.

        Returns ``(pending, member)``; *member* is ``None`` for rejections.
        Raises ValidationError (bad action), NotFoundError, AuthorizationError
        (branch leader outside their branch), ConflictError (already reviewed)
        or DatabaseError.
        """
        if action not in REVIEW_ACTIONS:
            raise ValidationError('Invalid action', 'الإجراء غير صالح',
                                  field_errors={'action': 'Must be approve or reject'})

        pending = ApprovalService.get_pending(pending_id)
        require_branch_access(reviewer, Permission.APPROVE_PENDING_MEMBERS, pending.branch)
        if pending.review_status != REVIEW_PENDING:
            raise ConflictError()

        if action == 'approve':
            return ApprovalService._approve(pending, reviewer, note)
        return ApprovalService._reject(pending, reviewer, note)

    @staticmethod
    def _claim(pending, values):
        """Conditionally move *pending* out of PENDING; False if someone beat us to it."""
        claimed = PendingMember.query.filter_by(
            id=pending.id, review_status=REVIEW_PENDING
        ).update(values, synchronize_session='fetch')
        return claimed == 1

    @staticmethod
    def _approve(pending, reviewer, note):
        # The father may have gone since submission (snapshot restore)
        _require_father(pending.proposed_father_id)
        member_values = pending.member_values()
        target_name = pending.display_name

        try:
            new_id = FamilyMember.next_id()
            if not ApprovalService._claim(pending, {
                'review_status': REVIEW_APPROVED,
                'reviewed_by': reviewer.id,
                'reviewed_at': utcnow(),
                'review_note': note,
                'approved_member_id': new_id,
            }):
                db.session.rollback()
                raise ConflictError()

            member = FamilyMember(
                id=new_id,
                created_by=str(reviewer.id),
                last_modified_by=str(reviewer.id),
                **member_values,
            )
            db.session.add(member)
            log_activity(
                'PENDING_MEMBER_APPROVED', CATEGORY_MEMBER,
                f'Approved pending member {target_name} as {new_id}',
                target_type='PENDING_MEMBER', target_id=pending.id, target_name=target_name,
                details={'pendingId': pending.id, 'newMemberId': new_id}, user=reviewer,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f'Failed to approve pending member {pending.id}')
            raise DatabaseError('Failed to add member to the family tree',
                                'فشل في إضافة العضو إلى شجرة العائلة')

        current_app.logger.info(f'Pending member {pending.id} approved as {new_id} by user {reviewer.id}')
        return pending, member

    @staticmethod
    def _reject(pending, reviewer, note):
        target_name = pending.display_name
        try:
            if not ApprovalService._claim(pending, {
                'review_status': REVIEW_REJECTED,
                'reviewed_by': reviewer.id,
                'reviewed_at': utcnow(),
                'review_note': note,
            }):
                db.session.rollback()
                raise ConflictError()

            log_activity(
                'PENDING_MEMBER_REJECTED', CATEGORY_MEMBER,
                f'Rejected pending member {target_name}',
                target_type='PENDING_MEMBER', target_id=pending.id, target_name=target_name,
                details={'pendingId': pending.id, 'reason': note}, user=reviewer,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f'Failed to reject pending member {pending.id}')
            raise DatabaseError()

        current_app.logger.info(f'Pending member {pending.id} rejected by user {reviewer.id}')
        return pending, None

    @staticmethod
    def delete_pending(pending_id, user):
        pending = ApprovalService.get_pending(pending_id)
        target_name = pending.display_name
        db.session.delete(pending)
        log_activity(
            'PENDING_MEMBER_DELETED', CATEGORY_MEMBER, f'Deleted pending member {target_name}',
            target_type='PENDING_MEMBER', target_id=pending_id, target_name=target_name,
            details={'reviewStatus': pending.review_status}, user=user,
        )
        db.session.commit()

    # ------------------------------------------------------------------
    # Branch entry links
    # ------------------------------------------------------------------

    @staticmethod
    def create_branch_link(branch_head_id, user, expires_in_days=None):
        """
        Return ``(link, created)`` for *branch_head_id*.

        An active link that already exists for the head is handed back
        instead of minting a second one.
        """
        head = get_or_404(FamilyMember, branch_head_id, 'Member', 'العضو غير موجود')
        require_branch_access(user, Permission.MANAGE_BRANCH_LINKS, head.branch)

        existing = BranchEntryLink.query.filter_by(branch_head_id=head.id, is_active=True) \
            .order_by(BranchEntryLink.created_at.desc()).first()
        if existing is not None and existing.is_usable():
            return existing, False

        link = BranchEntryLink(
            branch_head_id=head.id,
            branch_head_name=head.display_name,
            branch=head.branch,
            created_by_id=user.id,
            expires_at=utcnow() + timedelta(days=expires_in_days) if expires_in_days else None,
        )
        db.session.add(link)
        db.session.flush()
        log_activity(
            'CREATE_BRANCH_LINK', CATEGORY_ADMIN, f'Created entry link for branch head {head.display_name}',
            target_type='BRANCH_LINK', target_id=link.id, target_name=head.display_name,
            details={'branchHeadId': head.id, 'branch': head.branch}, user=user,
        )
        db.session.commit()
        return link, True

    @staticmethod
    def deactivate_branch_link(link_id, user):
        link = get_or_404(BranchEntryLink, link_id, 'Branch link', 'الرابط غير موجود')
        require_branch_access(user, Permission.MANAGE_BRANCH_LINKS, link.branch)
        link.is_active = False
        log_activity(
            'DEACTIVATE_BRANCH_LINK', CATEGORY_ADMIN, f'Deactivated entry link for {link.branch_head_name}',
            target_type='BRANCH_LINK', target_id=link.id, target_name=link.branch_head_name, user=user,
        )
        db.session.commit()
        return link
