from flask import Blueprint

# /backup/check is reachable without a session; admin routes use @login_required
backup_bp = Blueprint('backup', __name__, url_prefix='/api')

from . import routes
