from flask import Blueprint

batch_bp = Blueprint('batch', __name__)

from . import routes
