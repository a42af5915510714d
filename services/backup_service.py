"""
Backup Service
==============
Snapshots of the whole family tree and the automatic backup policy.

A snapshot stores every FamilyMember row, serialised with ``to_dict()``, as a
JSON array.  Three kinds exist: MANUAL, AUTO_BACKUP and PRE_RESTORE.

Automatic backups
-----------------
  is_backup_needed()     - policy check against BackupConfig and the newest AUTO_BACKUP
  create_auto_backup()   - never raises; records outcome in BackupConfig, then cleans up
  cleanup_old_backups()  - keep-newest-N and max-age, applied additively
  run_backup_if_needed() - the two above combined; used by /api/backup/check,
                           the CLI and BackupScheduler

Restore
-------
restore_from_snapshot() first commits a PRE_RESTORE snapshot, then replaces
every member inside one transaction.  Rows that fail validation are reported
in ``errors`` and skipped; the rest are restored.
"""
import json
import time
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.members import FamilyMember, TIMESTAMP_FIELDS
from models.snapshots import (
    Snapshot, BackupConfig, SNAPSHOT_MANUAL, SNAPSHOT_AUTO_BACKUP, SNAPSHOT_PRE_RESTORE,
)
from utils.audit import log_activity, CATEGORY_BACKUP
from utils.db_helpers import get_or_404, utcnow, isoformat
from utils.errors import DatabaseError, ValidationError

BACKUP_FORMAT = 'AlShayeFamilyTree_Backup_v1'

SYSTEM_ACTOR = 'SYSTEM'
SYSTEM_ACTOR_NAME = 'النظام (تلقائي)'


class BackupService:

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @staticmethod
    def serialize_members():
        """All members as camelCase dicts, ordered by id."""
        members = FamilyMember.query.order_by(FamilyMember.id.asc()).all()
        return [m.to_dict() for m in members]

    @staticmethod
    def build_snapshot(name, snapshot_type, description=None, user=None):
        """Capture the current tree into an unsaved Snapshot."""
        members = BackupService.serialize_members()
        return Snapshot(
            name=name,
            description=description,
            tree_data=json.dumps(members, ensure_ascii=False),
            member_count=len(members),
            snapshot_type=snapshot_type,
            created_by=str(user.id) if user is not None else SYSTEM_ACTOR,
            created_by_name=user.name_arabic if user is not None else SYSTEM_ACTOR_NAME,
        )

    @staticmethod
    def create_snapshot(name, description=None, user=None, snapshot_type=SNAPSHOT_MANUAL):
        """Create and commit a snapshot of the current tree."""
        snapshot = BackupService.build_snapshot(name, snapshot_type, description, user)
        try:
            db.session.add(snapshot)
            db.session.flush()
            # PRE_RESTORE snapshots are recorded by the restore entry itself
            if snapshot_type != SNAPSHOT_PRE_RESTORE:
                log_activity(
                    'CREATE_SNAPSHOT', CATEGORY_BACKUP,
                    f'Created {snapshot_type} snapshot "{name}" ({snapshot.member_count} members)',
                    target_type='SNAPSHOT', target_id=snapshot.id, target_name=name,
                    details={'memberCount': snapshot.member_count, 'snapshotType': snapshot_type},
                    user=user,
                )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f'Failed to create snapshot "{name}"')
            raise DatabaseError('Failed to create snapshot', 'فشل في إنشاء النسخة')
        current_app.logger.info(f'Snapshot {snapshot.id} ({snapshot_type}) created with {snapshot.member_count} members')
        return snapshot

    @staticmethod
    def get_snapshot(snapshot_id):
        return get_or_404(Snapshot, snapshot_id, 'Snapshot', 'النسخة غير موجودة')

    @staticmethod
    def delete_snapshot(snapshot_id, user):
        snapshot = BackupService.get_snapshot(snapshot_id)
        name = snapshot.name
        db.session.delete(snapshot)
        log_activity(
            'DELETE_SNAPSHOT', CATEGORY_BACKUP, f'Deleted snapshot "{name}"',
            target_type='SNAPSHOT', target_id=snapshot_id, target_name=name, user=user,
        )
        db.session.commit()
        current_app.logger.info(f'Snapshot {snapshot_id} deleted by user {user.id}')

    @staticmethod
    def export_document(snapshot, user):
        """Downloadable backup document for *snapshot*."""
        try:
            members = json.loads(snapshot.tree_data)
        except (ValueError, TypeError):
            raise ValidationError('Invalid snapshot data format', 'تنسيق بيانات النسخة غير صالح')
        return {
            'snapshotId': snapshot.id,
            'snapshotName': snapshot.name,
            'snapshotType': snapshot.snapshot_type,
            'createdAt': isoformat(snapshot.created_at),
            'createdBy': snapshot.created_by_name or snapshot.created_by,
            'memberCount': snapshot.member_count,
            'description': snapshot.description,
            'members': members,
            'metadata': {
                'exportedAt': isoformat(utcnow()),
                'exportedBy': user.name_arabic,
                'format': BACKUP_FORMAT,
            },
        }

    @staticmethod
    def download_filename(snapshot):
        safe_name = ''.join(c if c.isalnum() or c in '-_' else '_' for c in snapshot.name)
        return f'backup_{safe_name}_{snapshot.created_at.strftime("%Y-%m-%d")}.json'

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    @staticmethod
    def restore_from_snapshot(snapshot_id, user):
        """
        Replace every FamilyMember with the contents of a snapshot.

        Returns ``{restoredCount, preRestoreSnapshotId, errors}``.
        Raises ValidationError if the snapshot data is not a JSON array and
        DatabaseError if the replacement cannot be written (the tree is then
        left as it was and the PRE_RESTORE snapshot still exists).
        """
        snapshot = BackupService.get_snapshot(snapshot_id)
        try:
            rows = json.loads(snapshot.tree_data)
        except (ValueError, TypeError):
            raise ValidationError('Invalid snapshot data format', 'تنسيق بيانات النسخة غير صالح')
        if not isinstance(rows, list):
            raise ValidationError('Invalid snapshot data format', 'تنسيق بيانات النسخة غير صالح')

        pre_restore = BackupService.create_snapshot(
            f'Pre-restore backup {utcnow().strftime("%Y-%m-%d %H:%M")}',
            description=f'Automatic backup before restoring snapshot "{snapshot.name}"',
            user=user,
            snapshot_type=SNAPSHOT_PRE_RESTORE,
        )

        members, errors = BackupService._members_from_rows(rows)

        try:
            FamilyMember.query.delete(synchronize_session='fetch')
            db.session.flush()
            for member in members:
                db.session.add(member)
            db.session.flush()
            log_activity(
                'RESTORE_SNAPSHOT', CATEGORY_BACKUP,
                f'Restored snapshot "{snapshot.name}" ({len(members)} members)',
                target_type='SNAPSHOT', target_id=snapshot.id, target_name=snapshot.name,
                details={
                    'restoredCount': len(members),
                    'errorCount': len(errors),
                    'preRestoreSnapshotId': pre_restore.id,
                },
                user=user,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(
                f'Restore of snapshot {snapshot.id} failed; tree unchanged, pre-restore snapshot {pre_restore.id}'
            )
            raise DatabaseError('Failed to restore snapshot', 'فشل في استعادة النسخة',
                                details={'preRestoreSnapshotId': pre_restore.id})

        if errors:
            current_app.logger.warning(f'Restore of snapshot {snapshot.id}: {len(errors)} row(s) skipped')
        current_app.logger.info(f'Snapshot {snapshot.id} restored: {len(members)} members by user {user.id}')
        return {
            'restoredCount': len(members),
            'preRestoreSnapshotId': pre_restore.id,
            'errors': errors,
        }

    @staticmethod
    def _members_from_rows(rows):
        """Validate snapshot rows; returns ``(members, errors)``.

        Members come back parents-first (then by generation and id) so the
        ``father_id`` foreign key holds at every insert.  A member whose father
        is not restored is skipped and reported, as are its descendants.
        """
        valid, errors = {}, []
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                errors.append(f'Row {index}: not an object')
                continue
            data = {k: v for k, v in row.items() if k not in TIMESTAMP_FIELDS}
            member_id = data.get('id') or f'row {index}'
            if data.get('id') in valid:
                errors.append(f'Failed to restore member {member_id}: duplicate id')
                continue
            try:
                member = FamilyMember.from_dict(data)
            except ValueError as exc:
                errors.append(f'Failed to restore member {member_id}: {exc}')
                continue
            valid[member.id] = member

        ordered, placed = [], set()
        remaining = sorted(valid.values(), key=lambda m: (m.generation, m.id))
        while remaining:
            ready = [m for m in remaining if m.father_id is None or m.father_id in placed]
            if not ready:
                break
            ordered.extend(ready)
            placed.update(m.id for m in ready)
            remaining = [m for m in remaining if m.id not in placed]
        for member in remaining:
            errors.append(f'Failed to restore member {member.id}: father {member.father_id} not restored')
        return ordered, errors

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    @staticmethod
    def verify_backup_integrity(snapshot_id):
        """``{valid, memberCount, issues}`` for a stored snapshot."""
        snapshot = db.session.get(Snapshot, snapshot_id)
        if snapshot is None:
            return {'valid': False, 'memberCount': 0, 'issues': ['Snapshot not found']}
        try:
            members = json.loads(snapshot.tree_data)
        except (ValueError, TypeError):
            return {'valid': False, 'memberCount': 0, 'issues': ['Invalid JSON data']}
        if not isinstance(members, list):
            return {'valid': False, 'memberCount': 0, 'issues': ['Data is not an array']}

        issues = []
        if len(members) != snapshot.member_count:
            issues.append(f'Member count mismatch: expected {snapshot.member_count}, found {len(members)}')
        for member in members:
            member = member if isinstance(member, dict) else {}
            if not member.get('id'):
                issues.append('Member missing ID')
                break
            if not member.get('firstName'):
                issues.append(f'Member {member["id"]} missing firstName')
                break
        return {'valid': not issues, 'memberCount': len(members), 'issues': issues}

    # ------------------------------------------------------------------
    # Automatic backups
    # ------------------------------------------------------------------

    @staticmethod
    def latest_auto_backup():
        return (Snapshot.query
                .filter_by(snapshot_type=SNAPSHOT_AUTO_BACKUP)
                .order_by(Snapshot.created_at.desc(), Snapshot.id.desc())
                .first())

    @staticmethod
    def is_backup_needed():
        config = BackupConfig.get()
        if not config.enabled:
            return False
        latest = BackupService.latest_auto_backup()
        if latest is None:
            return True
        elapsed_hours = (utcnow() - latest.created_at).total_seconds() / 3600
        return elapsed_hours >= config.interval_hours

    @staticmethod
    def create_auto_backup():
        """
        Create an AUTO_BACKUP snapshot and prune old ones.

        Never raises: returns ``{success, snapshotId?, memberCount?, error?}``
        and records the outcome on BackupConfig.
        """
        started = time.monotonic()
        name = f'Auto Backup {utcnow().strftime("%Y-%m-%d %H:%M")}'
        try:
            snapshot = BackupService.build_snapshot(name, SNAPSHOT_AUTO_BACKUP,
                                                    description='Automatic scheduled backup')
            db.session.add(snapshot)
            config = BackupConfig.get()
            config.last_backup_at = utcnow()
            config.last_backup_status = 'SUCCESS'
            config.last_backup_error = None
            config.last_backup_duration_ms = int((time.monotonic() - started) * 1000)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception('Automatic backup failed')
            BackupService._record_failure(str(exc))
            return {'success': False, 'error': str(exc)}

        current_app.logger.info(f'Auto backup created: snapshot {snapshot.id} ({snapshot.member_count} members)')
        BackupService.cleanup_old_backups()
        return {'success': True, 'snapshotId': snapshot.id, 'memberCount': snapshot.member_count}

    @staticmethod
    def _record_failure(message):
        try:
            config = BackupConfig.get()
            config.last_backup_at = utcnow()
            config.last_backup_status = 'FAILED'
            config.last_backup_error = message[:1000]
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Could not record backup failure')

    @staticmethod
    def cleanup_old_backups():
        """
        Delete AUTO_BACKUP snapshots beyond ``max_backups`` (newest kept) and
        any AUTO_BACKUP older than ``retention_days``.  Returns the number deleted.
        """
        config = BackupConfig.get()
        backups = (Snapshot.query
                   .filter_by(snapshot_type=SNAPSHOT_AUTO_BACKUP)
                   .order_by(Snapshot.created_at.desc(), Snapshot.id.desc())
                   .all())

        doomed = {b.id: b for b in backups[config.max_backups:]}
        cutoff = utcnow() - timedelta(days=config.retention_days)
        for backup in backups:
            if backup.created_at < cutoff:
                doomed[backup.id] = backup

        if not doomed:
            return 0
        try:
            for backup in doomed.values():
                db.session.delete(backup)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Failed to clean up old backups')
            return 0
        current_app.logger.info(f'Cleaned up {len(doomed)} old backups')
        return len(doomed)

    @staticmethod
    def run_backup_if_needed():
        """``{ran, success, snapshotId?, error?}``"""
        if not BackupService.is_backup_needed():
            return {'ran': False, 'success': True}
        result = BackupService.create_auto_backup()
        outcome = {'ran': True, 'success': result['success']}
        if result['success']:
            outcome['snapshotId'] = result['snapshotId']
        else:
            outcome['error'] = result['error']
        return outcome

    @staticmethod
    def next_backup_time(config=None):
        config = config or BackupConfig.get()
        if not config.enabled:
            return None
        latest = BackupService.latest_auto_backup()
        if latest is None:
            return utcnow()
        return latest.created_at + timedelta(hours=config.interval_hours)

    @staticmethod
    def get_backup_stats():
        config = BackupConfig.get()
        counts = dict(
            db.session.query(Snapshot.snapshot_type, db.func.count(Snapshot.id))
            .group_by(Snapshot.snapshot_type).all()
        )
        storage = db.session.query(db.func.coalesce(db.func.sum(db.func.length(Snapshot.tree_data)), 0)).scalar()
        last = Snapshot.query.order_by(Snapshot.created_at.desc()).first()
        return {
            'totalBackups': sum(counts.values()),
            'autoBackups': counts.get(SNAPSHOT_AUTO_BACKUP, 0),
            'manualBackups': counts.get(SNAPSHOT_MANUAL, 0),
            'preRestoreBackups': counts.get(SNAPSHOT_PRE_RESTORE, 0),
            'lastBackupTime': isoformat(last.created_at) if last else None,
            'nextBackupTime': isoformat(BackupService.next_backup_time(config)),
            'totalStorageBytes': int(storage or 0),
        }

    @staticmethod
    def update_config(values, user):
        """Apply validated snake_case *values* to BackupConfig."""
        config = BackupConfig.get()
        for attr, value in values.items():
            setattr(config, attr, value)
        config.updated_by = str(user.id)
        log_activity(
            'UPDATE_BACKUP_CONFIG', CATEGORY_BACKUP, 'Updated automatic backup settings',
            target_type='BACKUP_CONFIG', target_id=config.id, details=values, user=user,
        )
        db.session.commit()
        current_app.logger.info(f'Backup config updated by user {user.id}: {values}')
        return config
