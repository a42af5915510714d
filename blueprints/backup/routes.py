"""
Backup Routes
Backup status / trigger endpoint and automatic backup settings
"""
from flask import current_app
from flask_login import login_required

from . import backup_bp
from .forms import BackupConfigForm
from extensions import limiter
from models.snapshots import BackupConfig
from services.backup_service import BackupService
from utils.errors import ValidationError
from utils.forms import validate_json
from utils.permissions import ADMIN_ROLES, Role, require_role
from utils.responses import json_success, get_json_body


# ── Backup check (no session required, rate-limited) ──────────────────────────

@backup_bp.route('/backup/check', methods=['GET'])
@limiter.limit(lambda: current_app.config['RATELIMIT_BACKUP_CHECK'])
def backup_status():
    return json_success(needed=BackupService.is_backup_needed(), stats=BackupService.get_backup_stats())


@backup_bp.route('/backup/check', methods=['POST'])
@limiter.limit(lambda: current_app.config['RATELIMIT_BACKUP_CHECK'])
def backup_check():
    result = BackupService.run_backup_if_needed()
    return json_success(**result)


# ── Settings ──────────────────────────────────────────────────────────────────

@backup_bp.route('/admin/backup-config', methods=['GET'])
@login_required
def get_backup_config():
    require_role(Role.SUPER_ADMIN)
    return json_success(config=BackupConfig.get().to_dict(), stats=BackupService.get_backup_stats())


@backup_bp.route('/admin/backup-config', methods=['PUT'])
@login_required
def update_backup_config():
    user = require_role(Role.SUPER_ADMIN)
    data = get_json_body()
    form = validate_json(BackupConfigForm, data)
    values = form.config_values(data)
    if not values:
        raise ValidationError('No settings to update', 'لا توجد إعدادات للتحديث')
    config = BackupService.update_config(values, user)
    return json_success('Backup settings saved', 'تم حفظ إعدادات النسخ الاحتياطي', config=config.to_dict())


@backup_bp.route('/admin/backup-config', methods=['POST'])
@login_required
def run_backup_now():
    require_role(*ADMIN_ROLES)
    result = BackupService.create_auto_backup()
    if not result['success']:
        return json_success('Backup failed', 'فشل النسخ الاحتياطي', status=500, **result)
    return json_success('Backup created', 'تم إنشاء النسخة الاحتياطية', **result)
