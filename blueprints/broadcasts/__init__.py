from flask import Blueprint

# RSVP replies come from email links without a session, so login is enforced per route
broadcasts_bp = Blueprint('broadcasts', __name__, url_prefix='/api/broadcasts')

from . import routes
