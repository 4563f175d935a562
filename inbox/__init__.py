"""
Flask application factory.

Creates and configures the app, registers the operational blueprints. The
pipeline itself runs in RQ workers (inbox.worker); the web process only
accepts batches and reports health.
"""
import os

from flask import Flask


def create_app():
    """Create and configure the Flask application."""
    from inbox.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-change-me')

    from inbox.routes.health import bp as health_bp
    from inbox.routes.ingest import bp as ingest_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(ingest_bp)

    # Circuit breakers for the classifier provider
    from inbox.extensions import redis_client
    from inbox.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic — no init_db() call.
    from inbox.database import import_models
    import_models()

    return app
