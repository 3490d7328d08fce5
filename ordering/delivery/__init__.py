from flask import Blueprint

bp = Blueprint("delivery", __name__, url_prefix="/api/delivery")

from . import routes  # noqa: E402,F401
