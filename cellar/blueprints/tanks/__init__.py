from flask import Blueprint

tanks_bp = Blueprint('tanks', __name__)

from . import routes
