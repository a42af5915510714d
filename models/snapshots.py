"""
Snapshot and BackupConfig models.

A Snapshot is an immutable, point-in-time JSON capture of every FamilyMember
row.  ``snapshot_type`` records provenance:

    MANUAL       - created by an admin on demand
    AUTO_BACKUP  - created by the backup check / scheduler
    PRE_RESTORE  - captured automatically right before a restore

BackupConfig is a singleton row (id=1) holding the automatic backup policy and
the bookkeeping of the last run.
"""
from flask import current_app

from extensions import db
from utils.db_helpers import utcnow, isoformat

SNAPSHOT_MANUAL = 'MANUAL'
SNAPSHOT_AUTO_BACKUP = 'AUTO_BACKUP'
SNAPSHOT_PRE_RESTORE = 'PRE_RESTORE'
SNAPSHOT_TYPES = (SNAPSHOT_MANUAL, SNAPSHOT_AUTO_BACKUP, SNAPSHOT_PRE_RESTORE)


class Snapshot(db.Model):
    __tablename__ = 'snapshots'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    tree_data = db.Column(db.Text, nullable=False)  # JSON array of member dicts
    member_count = db.Column(db.Integer, nullable=False, default=0)
    snapshot_type = db.Column(db.String(20), nullable=False, default=SNAPSHOT_MANUAL, index=True)
    created_by = db.Column(db.String(64), nullable=False, default='SYSTEM')
    created_by_name = db.Column(db.String(150))
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def to_dict(self, include_data=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'memberCount': self.member_count,
            'snapshotType': self.snapshot_type,
            'createdBy': self.created_by,
            'createdByName': self.created_by_name,
            'createdAt': isoformat(self.created_at),
            'sizeBytes': len(self.tree_data or ''),
        }
        if include_data:
            data['treeData'] = self.tree_data
        return data

    def __repr__(self):
        return f'<Snapshot {self.id} {self.snapshot_type} members={self.member_count}>'


class BackupConfig(db.Model):
    """Automatic backup policy (single row)."""
    __tablename__ = 'backup_config'

    id = db.Column(db.Integer, primary_key=True)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    interval_hours = db.Column(db.Integer, nullable=False, default=24)
    max_backups = db.Column(db.Integer, nullable=False, default=10)
    retention_days = db.Column(db.Integer, nullable=False, default=30)

    # Last-run bookkeeping
    last_backup_at = db.Column(db.DateTime)
    last_backup_status = db.Column(db.String(20))  # 'SUCCESS' | 'FAILED'
    last_backup_error = db.Column(db.Text)
    last_backup_duration_ms = db.Column(db.Integer)

    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    updated_by = db.Column(db.String(64))

    @staticmethod
    def get():
        """Return the config row, creating it from ``BACKUP_DEFAULTS`` if absent."""
        config = db.session.get(BackupConfig, 1)
        if config is None:
            defaults = current_app.config.get('BACKUP_DEFAULTS', {})
            config = BackupConfig(id=1, **defaults)
            db.session.add(config)
            db.session.commit()
        return config

    def to_dict(self):
        return {
            'enabled': self.enabled,
            'intervalHours': self.interval_hours,
            'maxBackups': self.max_backups,
            'retentionDays': self.retention_days,
            'lastBackupAt': isoformat(self.last_backup_at),
            'lastBackupStatus': self.last_backup_status,
            'lastBackupError': self.last_backup_error,
            'lastBackupDurationMs': self.last_backup_duration_ms,
        }

    def __repr__(self):
        return f'<BackupConfig enabled={self.enabled} every={self.interval_hours}h>'
