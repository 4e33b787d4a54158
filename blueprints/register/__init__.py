# blueprints/register/__init__.py
from flask import Blueprint

bp = Blueprint("register", __name__, url_prefix="/register")

from . import routes  # noqa: E402,F401
