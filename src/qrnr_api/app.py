"""
Factory for the QRNR ordering API (REST + SSE).

Serves the admin console, the super console and the customer ordering pages
under ``/api``. Authentication is stateless JWT in realm cookies or a Bearer
header.
"""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

from qrnr_api.extensions import (
    PAYMENT_PROVIDER_EXTENSION,
    PUBLISHER_EXTENSION,
    TRANSPORT_EXTENSION,
)
from qrnr_api.routes.api import api_bp
from qrnr_shared.config import AppConfig, load_config, validate_required_env_vars
from qrnr_shared.db import init_db, init_engine
from qrnr_shared.error_handlers import register_error_handlers
from qrnr_shared.jwt_middleware import init_auth_gate
from qrnr_shared.logging_config import configure_logging
from qrnr_shared.models import Base
from qrnr_shared.realtime.publisher import EventPublisher
from qrnr_shared.realtime.transport import RealtimeTransport, RedisTransport
from qrnr_shared.security_middleware import configure_security_headers, init_rate_limiter
from qrnr_shared.services.payment_providers import PaymentProvider, TossProvider


def create_app(
    config: AppConfig | None = None,
    transport: RealtimeTransport | None = None,
    payment_provider: PaymentProvider | None = None,
) -> Flask:
    """
    Build the API application.

    Collaborators default to the production ones (Redis pub/sub, Toss
    Payments); tests inject an in-memory transport and a fake provider.
    """
    if config is None:
        # Fail fast instead of signing tokens with a default key
        validate_required_env_vars(skip_in_debug=True)
        config = load_config("qrnr-api")

    app = Flask(__name__, static_folder=None)
    logger = configure_logging(config.app_name, config.log_level)

    app.config["QRNR_CONFIG"] = config
    app.config["APP_NAME"] = "QRNR API"
    app.config["DEBUG_MODE"] = config.debug_mode
    app.json.ensure_ascii = False

    # Database
    init_engine(config)
    init_db(Base.metadata)

    # Collaborators
    if transport is None:
        transport = RedisTransport(url=config.redis_url)
    if payment_provider is None:
        payment_provider = TossProvider(config.payment_secret_key, config.payment_api_url)
    app.extensions[TRANSPORT_EXTENSION] = transport
    app.extensions[PUBLISHER_EXTENSION] = EventPublisher(transport, config.redis_channel_prefix)
    app.extensions[PAYMENT_PROVIDER_EXTENSION] = payment_provider

    # Rate limiting runs before the authorization gate
    init_rate_limiter(app)
    init_auth_gate(app)
    configure_security_headers(app)

    app.register_blueprint(api_bp, url_prefix="/api")

    register_error_handlers(app)

    if config.cors_origins:
        CORS(
            app,
            resources={r"/api/*": {"origins": config.cors_origins, "supports_credentials": True}},
        )

    logger.info(f"{config.app_name} ready")
    return app
