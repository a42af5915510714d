from flask import current_app, jsonify
from sqlalchemy import text

from . import health_bp
from extensions import db
from utils.db_helpers import isoformat, utcnow


@health_bp.route('/health', methods=['GET'])
def health():
    checks = {}
    try:
        db.session.execute(text('SELECT 1'))
        checks['database'] = 'ok'
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Health check: database query failed')
        checks['database'] = 'error'

    healthy = all(value == 'ok' for value in checks.values())
    body = {
        'status': 'healthy' if healthy else 'unhealthy',
        'checks': checks,
        'timestamp': isoformat(utcnow()),
    }
    return jsonify(body), 200 if healthy else 503
