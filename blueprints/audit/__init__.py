from flask import Blueprint
from flask_login import login_required

audit_bp = Blueprint('audit', __name__, url_prefix='/api/admin/audit')

# Require authentication for all routes in this blueprint
@audit_bp.before_request
@login_required
def require_login():
    pass

from . import routes
