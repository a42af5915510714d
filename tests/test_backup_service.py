"""
Tests for BackupService: snapshots, the automatic backup policy, retention,
integrity checks and restore.
"""
import json
import threading
from datetime import timedelta

import pytest

from extensions import db
from models.activity_log import ActivityLog
from models.members import FamilyMember
from models.snapshots import BackupConfig, Snapshot
from services.backup_scheduler import BackupScheduler
from services.backup_service import BackupService
from utils.db_helpers import utcnow
from utils.errors import ValidationError


@pytest.fixture
def tree(app, make_member):
    make_member('P001', first_name='Shaye')
    make_member('P002', first_name='Fahad', father_id='P001', generation=2)
    make_member('P003', first_name='Saleh', father_id='P001', generation=2, branch='Saleh')


def _auto_backup(age_days=0):
    snapshot = Snapshot(
        name='old auto backup',
        tree_data='[]',
        member_count=0,
        snapshot_type='AUTO_BACKUP',
        created_at=utcnow() - timedelta(days=age_days),
    )
    db.session.add(snapshot)
    db.session.commit()
    return snapshot


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

class TestSnapshots:
    def test_snapshot_captures_every_member(self, app, admin, tree):
        snapshot = BackupService.create_snapshot('Before edits', user=admin)
        members = json.loads(snapshot.tree_data)
        assert snapshot.member_count == 3
        assert [m['id'] for m in members] == ['P001', 'P002', 'P003']
        assert snapshot.snapshot_type == 'MANUAL'
        assert snapshot.created_by == str(admin.id)

    def test_snapshot_is_logged(self, app, admin, tree):
        snapshot = BackupService.create_snapshot('Before edits', user=admin)
        entry = ActivityLog.query.filter_by(action='CREATE_SNAPSHOT').one()
        assert entry.target_id == str(snapshot.id)

    def test_export_document(self, app, admin, tree):
        snapshot = BackupService.create_snapshot('Export me', user=admin)
        document = BackupService.export_document(snapshot, admin)
        assert document['memberCount'] == 3
        assert len(document['members']) == 3
        assert document['metadata']['format'] == 'AlShayeFamilyTree_Backup_v1'

    def test_download_filename_is_safe(self, app, admin, tree):
        snapshot = BackupService.create_snapshot('My backup/1', user=admin)
        name = BackupService.download_filename(snapshot)
        assert name.startswith('backup_My_backup_1_')
        assert name.endswith('.json')


# ---------------------------------------------------------------------------
# Automatic backup policy
# ---------------------------------------------------------------------------

class TestAutoBackup:
    def test_needed_when_none_exist(self, app):
        assert BackupService.is_backup_needed() is True

    def test_not_needed_after_backup(self, app, tree):
        result = BackupService.create_auto_backup()
        assert result['success'] is True
        assert result['memberCount'] == 3
        assert BackupService.is_backup_needed() is False

    def test_needed_after_interval(self, app):
        snapshot = _auto_backup()
        snapshot.created_at = utcnow() - timedelta(hours=25)
        db.session.commit()
        assert BackupService.is_backup_needed() is True

    def test_disabled_never_needed(self, app):
        BackupConfig.get().enabled = False
        db.session.commit()
        assert BackupService.is_backup_needed() is False

    def test_success_recorded_on_config(self, app, tree):
        BackupService.create_auto_backup()
        config = BackupConfig.get()
        assert config.last_backup_status == 'SUCCESS'
        assert config.last_backup_at is not None
        assert config.last_backup_error is None

    def test_failure_is_reported_not_raised(self, app, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError('disk full')
        monkeypatch.setattr(BackupService, 'build_snapshot', boom)

        result = BackupService.create_auto_backup()
        assert result == {'success': False, 'error': 'disk full'}
        config = BackupConfig.get()
        assert config.last_backup_status == 'FAILED'
        assert config.last_backup_error == 'disk full'

    def test_run_if_needed(self, app, tree):
        first = BackupService.run_backup_if_needed()
        second = BackupService.run_backup_if_needed()
        assert first['ran'] is True and first['success'] is True
        assert second == {'ran': False, 'success': True}

    def test_stats(self, app, admin, tree):
        BackupService.create_snapshot('manual', user=admin)
        BackupService.create_auto_backup()
        stats = BackupService.get_backup_stats()
        assert stats['totalBackups'] == 2
        assert stats['autoBackups'] == 1
        assert stats['manualBackups'] == 1
        assert stats['totalStorageBytes'] > 0
        assert stats['nextBackupTime'] is not None


class TestCleanup:
    def test_keeps_newest_max_backups(self, app):
        config = BackupConfig.get()
        config.max_backups = 2
        db.session.commit()
        oldest = _auto_backup(age_days=3)
        _auto_backup(age_days=2)
        _auto_backup(age_days=1)

        assert BackupService.cleanup_old_backups() == 1
        assert db.session.get(Snapshot, oldest.id) is None
        assert Snapshot.query.count() == 2

    def test_removes_backups_past_retention(self, app):
        config = BackupConfig.get()
        config.retention_days = 7
        db.session.commit()
        stale = _auto_backup(age_days=10)
        _auto_backup(age_days=1)

        assert BackupService.cleanup_old_backups() == 1
        assert db.session.get(Snapshot, stale.id) is None

    def test_manual_snapshots_never_pruned(self, app, admin):
        config = BackupConfig.get()
        config.max_backups = 1
        config.retention_days = 1
        db.session.commit()
        manual = BackupService.create_snapshot('keep me', user=admin)
        manual.created_at = utcnow() - timedelta(days=30)
        db.session.commit()

        BackupService.cleanup_old_backups()
        assert db.session.get(Snapshot, manual.id) is not None


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------

class TestIntegrity:
    def test_valid_snapshot(self, app, admin, tree):
        snapshot = BackupService.create_snapshot('ok', user=admin)
        report = BackupService.verify_backup_integrity(snapshot.id)
        assert report == {'valid': True, 'memberCount': 3, 'issues': []}

    def test_missing_snapshot(self, app):
        report = BackupService.verify_backup_integrity(424242)
        assert report['issues'] == ['Snapshot not found']

    def test_invalid_json(self, app):
        snapshot = Snapshot(name='broken', tree_data='{not json', member_count=1)
        db.session.add(snapshot)
        db.session.commit()
        report = BackupService.verify_backup_integrity(snapshot.id)
        assert report == {'valid': False, 'memberCount': 0, 'issues': ['Invalid JSON data']}

    def test_not_an_array(self, app):
        snapshot = Snapshot(name='object', tree_data='{"id": "P001"}', member_count=1)
        db.session.add(snapshot)
        db.session.commit()
        assert BackupService.verify_backup_integrity(snapshot.id)['issues'] == ['Data is not an array']

    def test_count_mismatch(self, app):
        snapshot = Snapshot(name='short', tree_data='[{"id": "P001", "firstName": "A"}]', member_count=2)
        db.session.add(snapshot)
        db.session.commit()
        report = BackupService.verify_backup_integrity(snapshot.id)
        assert report['valid'] is False
        assert report['issues'] == ['Member count mismatch: expected 2, found 1']

    def test_member_without_name(self, app):
        snapshot = Snapshot(name='nameless', tree_data='[{"id": "P001"}]', member_count=1)
        db.session.add(snapshot)
        db.session.commit()
        assert BackupService.verify_backup_integrity(snapshot.id)['issues'] == ['Member P001 missing firstName']


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------

class TestRestore:
    def test_restore_replaces_tree(self, app, super_admin, make_member, tree):
        snapshot = BackupService.create_snapshot('three members', user=super_admin)
        make_member('P004', first_name='Late addition', father_id='P002', generation=3)
        db.session.get(FamilyMember, 'P002').city = 'Dammam'
        db.session.commit()

        result = BackupService.restore_from_snapshot(snapshot.id, super_admin)

        assert result['restoredCount'] == 3
        assert result['errors'] == []
        assert db.session.get(FamilyMember, 'P004') is None
        assert db.session.get(FamilyMember, 'P002').city is None
        assert FamilyMember.query.count() == 3

    def test_exactly_one_pre_restore_snapshot(self, app, super_admin, tree):
        snapshot = BackupService.create_snapshot('s', user=super_admin)
        result = BackupService.restore_from_snapshot(snapshot.id, super_admin)

        pre_restores = Snapshot.query.filter_by(snapshot_type='PRE_RESTORE').all()
        assert len(pre_restores) == 1
        assert pre_restores[0].id == result['preRestoreSnapshotId']
        assert pre_restores[0].member_count == 3
        assert ActivityLog.query.filter_by(action='RESTORE_SNAPSHOT').count() == 1

    def test_bad_rows_skipped_and_reported(self, app, super_admin):
        rows = [
            {'id': 'P001', 'firstName': 'Shaye', 'gender': 'Male', 'generation': 1},
            {'id': 'P002', 'gender': 'Male', 'generation': 2, 'fatherId': 'P001'},
            {'id': 'P003', 'firstName': 'Orphan', 'gender': 'Male', 'generation': 2, 'fatherId': 'P999'},
            'garbage',
        ]
        snapshot = Snapshot(name='messy', tree_data=json.dumps(rows), member_count=len(rows))
        db.session.add(snapshot)
        db.session.commit()

        result = BackupService.restore_from_snapshot(snapshot.id, super_admin)

        assert result['restoredCount'] == 1
        assert result['restoredCount'] < snapshot.member_count
        assert len(result['errors']) == 3
        assert 'Row 3: not an object' in result['errors']
        assert any(e.startswith('Failed to restore member P002') for e in result['errors'])
        assert 'Failed to restore member P003: father P999 not restored' in result['errors']
        assert [m.id for m in FamilyMember.query.all()] == ['P001']

    def test_children_restored_after_parents(self, app, super_admin):
        rows = [
            {'id': 'P003', 'firstName': 'Grandson', 'gender': 'Male', 'generation': 3, 'fatherId': 'P002'},
            {'id': 'P002', 'firstName': 'Son', 'gender': 'Male', 'generation': 2, 'fatherId': 'P001'},
            {'id': 'P001', 'firstName': 'Root', 'gender': 'Male', 'generation': 1},
        ]
        snapshot = Snapshot(name='unordered', tree_data=json.dumps(rows), member_count=3)
        db.session.add(snapshot)
        db.session.commit()

        result = BackupService.restore_from_snapshot(snapshot.id, super_admin)
        assert result['restoredCount'] == 3
        assert result['errors'] == []

    def test_invalid_data_aborts_before_pre_restore(self, app, super_admin, tree):
        snapshot = Snapshot(name='broken', tree_data='not json', member_count=0)
        db.session.add(snapshot)
        db.session.commit()

        with pytest.raises(ValidationError):
            BackupService.restore_from_snapshot(snapshot.id, super_admin)
        assert Snapshot.query.filter_by(snapshot_type='PRE_RESTORE').count() == 0
        assert FamilyMember.query.count() == 3


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class TestScheduler:
    def test_poll_interval_from_config(self, app):
        assert BackupScheduler(app).poll_seconds == app.config['BACKUP_SCHEDULER_POLL_SECONDS']
        assert BackupScheduler(app, poll_seconds=5).poll_seconds == 5

    def test_run_once_survives_errors(self, app, monkeypatch):
        def boom():
            raise RuntimeError('database gone')
        monkeypatch.setattr(BackupService, 'run_backup_if_needed', staticmethod(boom))
        assert BackupScheduler(app).run_once() == {'ran': False, 'success': False}

    def test_start_and_stop(self, app, monkeypatch):
        polled = threading.Event()

        def fake_check():
            polled.set()
            return {'ran': False, 'success': True}
        monkeypatch.setattr(BackupService, 'run_backup_if_needed', staticmethod(fake_check))

        scheduler = BackupScheduler(app, poll_seconds=3600)
        scheduler.start()
        assert scheduler.running is True
        assert polled.wait(5) is True
        scheduler.stop(timeout=5)
        assert scheduler.running is False
