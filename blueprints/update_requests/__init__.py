from flask import Blueprint
from flask_login import login_required

update_requests_bp = Blueprint('update_requests', __name__, url_prefix='/api/member-update-requests')

# Require authentication for all routes in this blueprint
@update_requests_bp.before_request
@login_required
def require_login():
    pass

from . import routes
