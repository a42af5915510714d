import os
from datetime import timedelta


class Config:
    """Base configuration"""

    # Secret key for signing reset / invite tokens
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), 'instance', 'family_tree.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False  # Set to True for SQL query logging during development

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Public base URL used in invite / reset / broadcast links
    APP_BASE_URL = os.environ.get('APP_BASE_URL') or 'http://localhost:5000'

    # Bearer-token sessions
    SESSION_DURATION = timedelta(days=7)
    REMEMBER_ME_DURATION = timedelta(days=30)

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_LOGIN = '10 per minute'
    RATELIMIT_PUBLIC_SUBMISSION = '10 per hour'
    RATELIMIT_BACKUP_CHECK = '30 per hour'

    # Security Headers
    SECURITY_HEADERS = {
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'SAMEORIGIN',
        'Referrer-Policy': 'strict-origin-when-cross-origin'
    }

    # Password Requirements
    PASSWORD_MIN_LENGTH = 8
    PASSWORD_REQUIRE_UPPERCASE = True
    PASSWORD_REQUIRE_LOWERCASE = True
    PASSWORD_REQUIRE_DIGIT = True
    PASSWORD_REQUIRE_SPECIAL = False

    # Login Security
    MAX_LOGIN_ATTEMPTS = 5
    LOCKOUT_DURATION = timedelta(minutes=15)

    # Token lifetimes
    INVITE_EXPIRY = timedelta(days=7)
    PASSWORD_RESET_EXPIRY = timedelta(hours=1)

    # Backup defaults, used when the backup_config row is first created
    BACKUP_DEFAULTS = {
        'enabled': True,
        'interval_hours': 24,
        'max_backups': 10,
        'retention_days': 30,
    }
    BACKUP_SCHEDULER_POLL_SECONDS = 15 * 60

    # Outbound email (HTTP provider, e.g. Resend-compatible JSON API)
    EMAIL_PROVIDER_URL = os.environ.get('EMAIL_PROVIDER_URL')
    EMAIL_API_KEY = os.environ.get('EMAIL_API_KEY')
    EMAIL_FROM = os.environ.get('EMAIL_FROM') or 'no-reply@family-tree.local'
    EMAIL_TIMEOUT_SECONDS = 10

    # Photo uploads (base64 data URLs)
    MAX_IMAGE_BYTES = 5 * 1024 * 1024
    RATELIMIT_IMAGE_UPLOAD = '20 per hour'

    @classmethod
    def init_app(cls, app):
        pass


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    # MUST set these environment variables in production
    SECRET_KEY = os.environ.get('SECRET_KEY')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or os.environ.get('SQLALCHEMY_DATABASE_URI')

    PREFERRED_URL_SCHEME = 'https'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        if not app.config.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY environment variable must be set in production!")

        if 'sqlite' in (app.config.get('SQLALCHEMY_DATABASE_URI') or ''):
            import warnings
            warnings.warn("Using SQLite in production is not recommended. Use PostgreSQL or MySQL.")


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    EMAIL_PROVIDER_URL = None
    EMAIL_API_KEY = None


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
