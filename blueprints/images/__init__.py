from flask import Blueprint

# Uploads are public; the review queue and gallery check login per route.
images_bp = Blueprint('images', __name__, url_prefix='/api/images')

from . import routes
