"""
Periodic automatic backups.

``BackupScheduler`` polls ``BackupService.run_backup_if_needed()`` from a
daemon thread every ``BACKUP_SCHEDULER_POLL_SECONDS``.  The backup interval
itself is still governed by BackupConfig; the poll only decides how quickly
an overdue backup is noticed.  ``stop()`` wakes the thread immediately.

Started by ``flask backup scheduler``.  The /api/backup/check endpoint remains
available as a manual trigger.
"""
import logging
import threading

from services.backup_service import BackupService

logger = logging.getLogger(__name__)


class BackupScheduler:

    def __init__(self, app, poll_seconds=None):
        self.app = app
        self.poll_seconds = poll_seconds or app.config.get('BACKUP_SCHEDULER_POLL_SECONDS', 900)
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            logger.info('[Backup Scheduler] already running')
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='backup-scheduler', daemon=True)
        self._thread.start()
        logger.info(f'[Backup Scheduler] started, polling every {self.poll_seconds}s')

    def stop(self, timeout=None):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        logger.info('[Backup Scheduler] stopped')

    def run_once(self):
        """One poll: run a backup if the policy says one is due."""
        with self.app.app_context():
            try:
                result = BackupService.run_backup_if_needed()
            except Exception:
                logger.exception('[Backup Scheduler] backup check failed')
                return {'ran': False, 'success': False}
        if result['ran']:
            logger.info(f'[Backup Scheduler] backup ran: {result}')
        return result

    def _run(self):
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self.poll_seconds)
