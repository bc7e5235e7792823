"""
Flask extensions initialization.

This module holds Flask extension instances to avoid circular imports.
Extensions are initialized here but configured in the application factory.
"""

from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy

from permits.realtime import LocalChangeFeed

# Initialize Flask-SQLAlchemy extension
# Will be configured with app in create_app()
db = SQLAlchemy()

login_manager = LoginManager()

# Committed notification changes are published here; push adapters
# (websocket bridge, message broker) subscribe to it.
change_feed = LocalChangeFeed()
