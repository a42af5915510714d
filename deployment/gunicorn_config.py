"""
Gunicorn settings for the Family Tree API

Run with: gunicorn -c deployment/gunicorn_config.py "app:create_app('production')"

Every value can be overridden with a GUNICORN_* environment variable.
Automatic backups are not run by the workers; start them separately with
``flask backup scheduler``.
"""
import multiprocessing
import os


def _env_int(name, default):
    return int(os.environ.get(name, default))


bind = os.environ.get('GUNICORN_BIND', '127.0.0.1:8000')

# Sync workers: restores and backups hold one request for the whole tree
workers = _env_int('GUNICORN_WORKERS', min(multiprocessing.cpu_count() * 2 + 1, 8))
worker_class = 'sync'
timeout = _env_int('GUNICORN_TIMEOUT', 120)
graceful_timeout = _env_int('GUNICORN_GRACEFUL_TIMEOUT', 60)
keepalive = 5
max_requests = _env_int('GUNICORN_MAX_REQUESTS', 500)
max_requests_jitter = 50

# Logs go to stderr unless a file is given, next to the app's own logs/
accesslog = os.environ.get('GUNICORN_ACCESS_LOG', '-')
errorlog = os.environ.get('GUNICORN_ERROR_LOG', '-')
loglevel = os.environ.get('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(t)s "%(r)s" %(s)s %(b)s %(D)sus'

proc_name = 'family-tree'
pidfile = os.environ.get('GUNICORN_PIDFILE')
umask = 0o007

# Request headers only; photo uploads arrive in the JSON body
limit_request_line = 4094
limit_request_fields = 50
limit_request_field_size = 8190


def when_ready(server):
    """Warn when per-process rate limit counters would be split across workers."""
    storage = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    if storage.startswith('memory://') and server.cfg.workers > 1:
        server.log.warning(
            "RATELIMIT_STORAGE_URI is %s with %s workers; each worker counts "
            "login and upload attempts on its own", storage, server.cfg.workers
        )
    server.log.info("Family Tree API ready with %s workers", server.cfg.workers)


def worker_abort(worker):
    """Called when a worker times out, usually on a large restore"""
    worker.log.warning("Worker %s aborted after %ss; raise GUNICORN_TIMEOUT for large restores",
                       worker.pid, worker.cfg.timeout)
