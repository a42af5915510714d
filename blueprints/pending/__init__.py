from flask import Blueprint

# Mixes public submission endpoints with admin review endpoints, so login is
# enforced per route rather than blueprint-wide.
pending_bp = Blueprint('pending', __name__, url_prefix='/api')

from . import routes
