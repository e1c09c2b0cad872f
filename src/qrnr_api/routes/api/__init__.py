"""
QRNR API - Modular Blueprint Structure

This package organizes the API endpoints into logical sub-blueprints.
Access rules for every endpoint live in ``qrnr_shared.permissions``.
"""

from flask import Blueprint

# Create main API blueprint
api_bp = Blueprint("api", __name__)

# Import and register sub-blueprints
from .admins import admins_bp  # noqa: E402
from .auth import auth_bp  # noqa: E402
from .calls import calls_bp  # noqa: E402
from .events import events_bp  # noqa: E402
from .mappings import mappings_bp  # noqa: E402
from .orders import orders_bp  # noqa: E402
from .payments import payments_bp  # noqa: E402
from .settings import settings_bp  # noqa: E402
from .stores import stores_bp  # noqa: E402

# Register sub-blueprints
api_bp.register_blueprint(auth_bp)
api_bp.register_blueprint(stores_bp)
api_bp.register_blueprint(admins_bp)
api_bp.register_blueprint(mappings_bp)
api_bp.register_blueprint(orders_bp)
api_bp.register_blueprint(payments_bp)
api_bp.register_blueprint(calls_bp)
api_bp.register_blueprint(settings_bp)
api_bp.register_blueprint(events_bp)


# Health check endpoint
@api_bp.get("/health")
def health_check():
    """Simple health check endpoint"""
    return {"status": "ok", "service": "qrnr-api"}, 200
