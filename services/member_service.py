"""
Member Service
==============
Direct reads and admin edits of FamilyMember rows.

Members are never hard-deleted here; the only way rows disappear is a
snapshot restore (see BackupService).
"""
from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.members import FamilyMember, REQUIRED_FIELDS
from utils.audit import log_activity, CATEGORY_MEMBER
from utils.db_helpers import get_or_404
from utils.errors import ConflictError, ValidationError
from utils.permissions import Permission, require_branch_access


class MemberService:

    @staticmethod
    def get_member(member_id):
        return get_or_404(FamilyMember, member_id, 'Member', 'العضو غير موجود')

    @staticmethod
    def search(branch=None, generation=None, status=None, search=None):
        """Filtered member query ordered by generation then id."""
        query = FamilyMember.query
        if branch:
            query = query.filter(FamilyMember.branch == branch)
        if generation:
            query = query.filter(FamilyMember.generation == generation)
        if status:
            query = query.filter(FamilyMember.status == status)
        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(
                FamilyMember.first_name.ilike(pattern),
                FamilyMember.full_name_ar.ilike(pattern),
                FamilyMember.full_name_en.ilike(pattern),
                FamilyMember.father_name.ilike(pattern),
            ))
        return query.order_by(FamilyMember.generation.asc(), FamilyMember.id.asc())

    @staticmethod
    def build_tree(root_id=None):
        """Nested ``{..member, children: [...]}`` forest (or one subtree)."""
        members = FamilyMember.query.order_by(FamilyMember.generation.asc(), FamilyMember.id.asc()).all()
        nodes = {m.id: dict(m.to_dict(), children=[]) for m in members}
        roots = []
        for member in members:
            node = nodes[member.id]
            parent = nodes.get(member.father_id)
            if parent is not None and member.father_id != member.id:
                parent['children'].append(node)
            else:
                roots.append(node)
        if root_id:
            if root_id not in nodes:
                MemberService.get_member(root_id)
            return [nodes[root_id]]
        return roots

    @staticmethod
    def create_member(data, user):
        """Create a member from camelCase *data* with the next sequential id."""
        require_branch_access(user, Permission.ADD_MEMBER, data.get('branch'))
        data = dict(data, id=FamilyMember.next_id())
        data.pop('createdAt', None)
        data.pop('updatedAt', None)
        try:
            member = FamilyMember.from_dict(data)
        except ValueError as exc:
            raise ValidationError(str(exc), 'بيانات العضو غير صالحة')
        if member.father_id and db.session.get(FamilyMember, member.father_id) is None:
            raise ValidationError('Father not found', 'الأب غير موجود',
                                  field_errors={'fatherId': 'Unknown member'})

        member.created_by = str(user.id)
        member.last_modified_by = str(user.id)
        db.session.add(member)
        log_activity('CREATE_MEMBER', CATEGORY_MEMBER, f'Added member {member.display_name} ({member.id})',
                     target_type='FAMILY_MEMBER', target_id=member.id, target_name=member.display_name,
                     user=user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('Member id already taken, please retry', 'المعرف مستخدم، حاول مرة أخرى')
        current_app.logger.info(f'Member {member.id} created by user {user.id}')
        return member

    @staticmethod
    def update_member(member_id, changes, user):
        member = MemberService.get_member(member_id)
        require_branch_access(user, Permission.EDIT_MEMBER, member.branch)
        if 'branch' in changes and changes['branch'] != member.branch:
            require_branch_access(user, Permission.EDIT_MEMBER, changes['branch'])
        if changes.get('fatherId') == member.id:
            raise ValidationError('A member cannot be their own father', 'لا يمكن أن يكون العضو أباً لنفسه',
                                  field_errors={'fatherId': 'Self reference'})
        changes = {k: v for k, v in changes.items() if not (k in REQUIRED_FIELDS and v is None)}
        try:
            member.apply_changes(changes)
        except ValueError as exc:
            raise ValidationError(str(exc), 'بيانات العضو غير صالحة')
        member.last_modified_by = str(user.id)
        log_activity('UPDATE_MEMBER', CATEGORY_MEMBER, f'Edited member {member.display_name} ({member.id})',
                     target_type='FAMILY_MEMBER', target_id=member.id, target_name=member.display_name,
                     details={'fields': sorted(k for k in changes if k != 'id')}, user=user)
        db.session.commit()
        return member
