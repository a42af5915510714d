import os
import logging
import time
import click
from logging.handlers import RotatingFileHandler
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from config import config
from extensions import db, migrate, login_manager, limiter
from utils.errors import AppError, AuthenticationError, InternalError, NotFoundError, RateLimitError


def configure_logging(app):
    """Configure application logging"""
    if not app.debug and not app.testing:
        # Create logs directory if it doesn't exist
        if not os.path.exists('logs'):
            os.mkdir('logs')

        # File handler for errors
        file_handler = RotatingFileHandler(
            'logs/family_tree.log',
            maxBytes=10240000,  # 10MB
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Family Tree startup')
    else:
        # Development logging to console
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('Family Tree startup (DEBUG mode)')


def create_app(config_name=None):
    """Application factory pattern"""

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # Configure logging
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # Add security headers
    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses"""
        headers = app.config.get('SECURITY_HEADERS', {})
        for header, value in headers.items():
            response.headers[header] = value
        return response

    # Configure Flask-Login: bearer tokens only, no cookie sessions
    from services.auth_service import load_user_from_request
    login_manager.session_protection = None
    login_manager.request_loader(load_user_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        raise AuthenticationError()

    # Import models to ensure they're registered with SQLAlchemy
    with app.app_context():
        import models

    # Register blueprints
    from blueprints.auth import auth_bp
    from blueprints.members import members_bp
    from blueprints.pending import pending_bp
    from blueprints.update_requests import update_requests_bp
    from blueprints.snapshots import snapshots_bp
    from blueprints.backup import backup_bp
    from blueprints.broadcasts import broadcasts_bp
    from blueprints.images import images_bp
    from blueprints.audit import audit_bp
    from blueprints.users import users_bp
    from blueprints.health import health_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(members_bp)
    app.register_blueprint(pending_bp)
    app.register_blueprint(update_requests_bp)
    app.register_blueprint(snapshots_bp)
    app.register_blueprint(backup_bp)
    app.register_blueprint(broadcasts_bp)
    app.register_blueprint(images_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(health_bp)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_commands(app)

    return app


def register_error_handlers(app):
    """Render every failure as the JSON error envelope"""

    @app.errorhandler(AppError)
    def app_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            app.logger.error(f'{error.code}: {error.message} {error.details}')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify(NotFoundError().to_dict()), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        body = AppError('Method not allowed', 'الطريقة غير مسموحة').to_dict()
        body['code'] = 'METHOD_NOT_ALLOWED'
        return jsonify(body), 405

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify(RateLimitError().to_dict()), 429

    @app.errorhandler(HTTPException)
    def http_error(error):
        body = AppError(error.description, error.description).to_dict()
        body['code'] = error.name.upper().replace(' ', '_')
        return jsonify(body), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        db.session.rollback()
        app.logger.exception(f'Internal Server Error: {error}')
        return jsonify(InternalError().to_dict()), 500


def register_commands(app):
    """Register Flask CLI commands."""

    @app.cli.group()
    def super_admin():
        """Manage SUPER_ADMIN accounts."""
        pass

    @super_admin.command('grant')
    @click.argument('email')
    def grant_super_admin(email):
        """Make the user with EMAIL an active SUPER_ADMIN."""
        from models.users import User, USER_ACTIVE
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo(f'ERROR: No user found with email "{email}"', err=True)
            return
        if user.role == 'SUPER_ADMIN':
            click.echo(f'"{user.name_arabic}" ({email}) is already a super admin.')
            return
        user.role = 'SUPER_ADMIN'
        user.status = USER_ACTIVE
        db.session.commit()
        click.echo(f'SUCCESS: "{user.name_arabic}" ({email}) is now a super admin.')

    @super_admin.command('revoke')
    @click.argument('email')
    def revoke_super_admin(email):
        """Demote the SUPER_ADMIN with EMAIL to ADMIN."""
        from models.users import User
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo(f'ERROR: No user found with email "{email}"', err=True)
            return
        if user.role != 'SUPER_ADMIN':
            click.echo(f'"{user.name_arabic}" ({email}) is not a super admin.')
            return
        if User.query.filter_by(role='SUPER_ADMIN').count() == 1:
            click.echo('ERROR: Cannot revoke the last super admin.', err=True)
            return
        user.role = 'ADMIN'
        db.session.commit()
        click.echo(f'SUCCESS: "{user.name_arabic}" ({email}) is now an admin.')

    @super_admin.command('list')
    def list_super_admins():
        """List all SUPER_ADMIN accounts."""
        from models.users import User
        admins = User.query.filter_by(role='SUPER_ADMIN').all()
        if not admins:
            click.echo('No super admins found.')
            return
        click.echo(f'{"ID":<5} {"Name":<25} {"Email":<40} {"Status":<10}')
        click.echo('-' * 82)
        for u in admins:
            click.echo(f'{u.id:<5} {u.name_arabic:<25} {u.email:<40} {u.status:<10}')

    @app.cli.group()
    def backup():
        """Automatic backups."""
        pass

    @backup.command('scheduler')
    @click.option('--poll-seconds', type=int, default=None, help='Seconds between backup checks.')
    def run_scheduler(poll_seconds):
        """Run the periodic backup scheduler until interrupted."""
        from services.backup_scheduler import BackupScheduler
        scheduler = BackupScheduler(app, poll_seconds=poll_seconds)
        scheduler.start()
        click.echo(f'Backup scheduler running (every {scheduler.poll_seconds}s). Press Ctrl+C to stop.')
        try:
            while scheduler.running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            scheduler.stop(timeout=10)

    @backup.command('check')
    def backup_check():
        """Run an automatic backup if one is due."""
        from services.backup_service import BackupService
        result = BackupService.run_backup_if_needed()
        if not result['ran']:
            click.echo('No backup needed.')
        elif result['success']:
            click.echo(f'SUCCESS: Backup created (snapshot {result["snapshotId"]}).')
        else:
            click.echo(f'ERROR: Backup failed: {result["error"]}', err=True)

    @backup.command('cleanup')
    def backup_cleanup():
        """Apply the backup retention policy."""
        from services.backup_service import BackupService
        deleted = BackupService.cleanup_old_backups()
        click.echo(f'Deleted {deleted} old backup(s).')

    @backup.command('verify')
    @click.argument('snapshot_id', type=int)
    def backup_verify(snapshot_id):
        """Check the integrity of snapshot SNAPSHOT_ID."""
        from services.backup_service import BackupService
        report = BackupService.verify_backup_integrity(snapshot_id)
        status = 'VALID' if report['valid'] else 'INVALID'
        click.echo(f'Snapshot {snapshot_id}: {status} ({report["memberCount"]} members)')
        for issue in report['issues']:
            click.echo(f'  - {issue}')


if __name__ == '__main__':
    app = create_app()
    # SECURITY: Only bind to localhost in development
    # Never use 0.0.0.0 with debug mode - it exposes the debugger to the network
    app.run(host='127.0.0.1', port=5000, debug=True)
