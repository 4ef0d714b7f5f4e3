from flask import Blueprint

vineyard_bp = Blueprint('vineyard', __name__)

from . import routes
