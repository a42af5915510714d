from flask import request

from . import members_bp
from .forms import MemberForm, MemberEditForm
from services.member_service import MemberService
from utils.db_helpers import paginate
from utils.forms import validate_json
from utils.permissions import Permission, require_permission
from utils.responses import json_success, get_json_body


@members_bp.route('/members', methods=['GET'])
def list_members():
    require_permission(Permission.VIEW_FAMILY_TREE)
    query = MemberService.search(
        branch=request.args.get('branch'),
        generation=request.args.get('generation', type=int),
        status=request.args.get('status'),
        search=request.args.get('search'),
    )
    members, pagination = paginate(query, request.args.get('page', 1, type=int),
                                   request.args.get('limit', 50, type=int), max_limit=500)
    return json_success(members=[m.to_dict() for m in members], pagination=pagination)


@members_bp.route('/members/<member_id>', methods=['GET'])
def get_member(member_id):
    require_permission(Permission.VIEW_MEMBER_PROFILES)
    member = MemberService.get_member(member_id)
    return json_success(member=member.to_dict())


@members_bp.route('/tree', methods=['GET'])
def tree():
    require_permission(Permission.VIEW_FAMILY_TREE)
    return json_success(tree=MemberService.build_tree(request.args.get('rootId')))


@members_bp.route('/members', methods=['POST'])
def create_member():
    user = require_permission(Permission.ADD_MEMBER)
    data = get_json_body()
    form = validate_json(MemberForm, data)
    values = {k: v for k, v in form.data.items() if v not in (None, '')}
    member = MemberService.create_member(values, user)
    return json_success('Member added', 'تمت إضافة العضو', status=201, member=member.to_dict())


@members_bp.route('/members/<member_id>', methods=['PUT'])
def update_member(member_id):
    user = require_permission(Permission.EDIT_MEMBER)
    data = get_json_body()
    form = validate_json(MemberEditForm, data)
    changes = {k: (None if v == '' else v) for k, v in form.provided(data).items()}
    member = MemberService.update_member(member_id, changes, user)
    return json_success('Member updated', 'تم تحديث بيانات العضو', member=member.to_dict())
