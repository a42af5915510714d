"""
Tests for the gunicorn settings file: environment overrides and the
server hooks.
"""
import logging
import runpy
from pathlib import Path
from types import SimpleNamespace

CONFIG_PATH = Path(__file__).resolve().parent.parent / 'deployment' / 'gunicorn_config.py'


def _load(monkeypatch, **env):
    for key in ('GUNICORN_WORKERS', 'GUNICORN_TIMEOUT', 'GUNICORN_BIND', 'RATELIMIT_STORAGE_URI'):
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return runpy.run_path(str(CONFIG_PATH))


def _server(workers):
    return SimpleNamespace(cfg=SimpleNamespace(workers=workers), log=logging.getLogger('test.gunicorn'))


def test_defaults(monkeypatch):
    settings = _load(monkeypatch)
    assert settings['bind'] == '127.0.0.1:8000'
    assert settings['timeout'] == 120
    assert 1 <= settings['workers'] <= 8
    assert settings['worker_class'] == 'sync'


def test_environment_overrides(monkeypatch):
    settings = _load(monkeypatch, GUNICORN_WORKERS='3', GUNICORN_TIMEOUT='600', GUNICORN_BIND='0.0.0.0:9000')
    assert settings['workers'] == 3
    assert settings['timeout'] == 600
    assert settings['bind'] == '0.0.0.0:9000'


def test_memory_rate_limits_warned_with_many_workers(monkeypatch, caplog):
    settings = _load(monkeypatch)
    with caplog.at_level(logging.INFO, logger='test.gunicorn'):
        settings['when_ready'](_server(4))
    assert any(r.levelno == logging.WARNING and 'memory://' in r.getMessage() for r in caplog.records)


def test_shared_rate_limit_storage_not_warned(monkeypatch, caplog):
    settings = _load(monkeypatch, RATELIMIT_STORAGE_URI='redis://localhost:6379/0')
    with caplog.at_level(logging.INFO, logger='test.gunicorn'):
        settings['when_ready'](_server(4))
    assert not [r for r in caplog.records if r.levelno == logging.WARNING]
