"""
Snapshot Routes
Manual snapshots, downloads, integrity checks and restore
"""
import json

from flask import Response, request

from . import snapshots_bp
from .forms import SnapshotForm, SnapshotActionForm
from models.snapshots import Snapshot
from services.backup_service import BackupService
from utils.forms import validate_json
from utils.permissions import ADMIN_ROLES, Permission, Role, require_permission, require_role
from utils.responses import json_success


@snapshots_bp.route('', methods=['GET'])
def list_snapshots():
    require_role(*ADMIN_ROLES)
    query = Snapshot.query
    snapshot_type = request.args.get('type')
    if snapshot_type:
        query = query.filter(Snapshot.snapshot_type == snapshot_type.upper())
    snapshots = query.order_by(Snapshot.created_at.desc(), Snapshot.id.desc()).all()
    return json_success(snapshots=[s.to_dict() for s in snapshots])


@snapshots_bp.route('', methods=['POST'])
def create_snapshot():
    user = require_permission(Permission.CREATE_SNAPSHOT)
    form = validate_json(SnapshotForm)
    snapshot = BackupService.create_snapshot(form.name.data.strip(), form.description.data or None, user=user)
    return json_success('Snapshot created', 'تم إنشاء النسخة', status=201, snapshot=snapshot.to_dict())


@snapshots_bp.route('/<int:snapshot_id>', methods=['GET'])
def get_snapshot(snapshot_id):
    user = require_role(*ADMIN_ROLES)
    snapshot = BackupService.get_snapshot(snapshot_id)

    if request.args.get('download') == 'true':
        document = BackupService.export_document(snapshot, user)
        return Response(
            json.dumps(document, ensure_ascii=False, indent=2),
            mimetype='application/json',
            headers={
                'Content-Disposition': f'attachment; filename="{BackupService.download_filename(snapshot)}"'
            },
        )
    return json_success(snapshot=snapshot.to_dict(include_data=True))


@snapshots_bp.route('/<int:snapshot_id>', methods=['POST'])
def snapshot_action(snapshot_id):
    user = require_permission(Permission.RESTORE_SNAPSHOT, allow_roles=(Role.SUPER_ADMIN,))
    validate_json(SnapshotActionForm)
    result = BackupService.restore_from_snapshot(snapshot_id, user)
    return json_success(
        f'Restored {result["restoredCount"]} members',
        f'تمت استعادة {result["restoredCount"]} عضو',
        **result,
    )


@snapshots_bp.route('/<int:snapshot_id>/verify', methods=['GET'])
def verify_snapshot(snapshot_id):
    require_role(*ADMIN_ROLES)
    BackupService.get_snapshot(snapshot_id)
    return json_success(integrity=BackupService.verify_backup_integrity(snapshot_id))


@snapshots_bp.route('/<int:snapshot_id>', methods=['DELETE'])
def delete_snapshot(snapshot_id):
    user = require_role(Role.SUPER_ADMIN)
    BackupService.delete_snapshot(snapshot_id, user)
    return json_success('Snapshot deleted', 'تم حذف النسخة')
