from flask import Blueprint
from flask_login import login_required

snapshots_bp = Blueprint('snapshots', __name__, url_prefix='/api/admin/snapshots')

# Require authentication for all routes in this blueprint
@snapshots_bp.before_request
@login_required
def require_login():
    pass

from . import routes
