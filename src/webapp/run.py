#!/usr/bin/env python3
import os

from flask import Flask, jsonify
from flask_login import current_user

from permits.audit.events import init_audit_events
from permits.base import Base
from permits.core.identity import Profile
from permits.realtime import init_realtime_events
from permits.session import database_url_from_env
from webapp.api.v1.applications import bp as api_applications_bp
from webapp.api.v1.notifications import bp as api_notifications_bp
from webapp.auth.models import AuthUser
from webapp.extensions import db, login_manager, change_feed


def create_app(config=None):
    """
    Application factory.

    Args:
        config: Optional dict of Flask config overrides (tests pass
                SQLALCHEMY_DATABASE_URI and TESTING here)
    """
    app = Flask(__name__)

    app.config['SECRET_KEY'] = os.getenv('PERMITS_SECRET_KEY', 'change-this-in-production')

    # Flask-SQLAlchemy configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url_from_env()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    if config:
        app.config.update(config)

    uri = app.config['SQLALCHEMY_DATABASE_URI']
    if not uri.startswith('sqlite'):
        # Production-ready connection pool configuration
        engine_options = {
            'pool_size': 10,
            'max_overflow': 20,
            'pool_pre_ping': True,
            'pool_recycle': 3600,
            'pool_timeout': int(os.getenv('PERMITS_DB_TIMEOUT', '10')),
        }
        if os.getenv('PERMITS_DB_REQUIRE_SSL', 'false').lower() in ('true', '1', 'yes'):
            engine_options['connect_args'] = {'ssl': {'ssl_disabled': False}}
        app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', engine_options)

    db.init_app(app)

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        """Load user by ID for Flask-Login."""
        profile = db.session.get(Profile, int(user_id))
        if profile and profile.is_active:
            return AuthUser(profile)
        return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Unauthorized - authentication required'}), 401

    # Audit trail and realtime publishing on the request-scoped session
    init_audit_events(app.config.get('PERMITS_AUDIT_LOG_PATH'), target=db.session)
    init_realtime_events(change_feed, target=db.session)

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        db.session.remove()

    # Register API blueprints
    app.register_blueprint(api_applications_bp, url_prefix='/api/v1/applications')
    app.register_blueprint(api_notifications_bp, url_prefix='/api/v1/notifications')

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok', 'authenticated': current_user.is_authenticated})

    with app.app_context():
        Base.metadata.create_all(db.engine)

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True, port=5050)
