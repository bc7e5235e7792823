"""
pytest fixtures for API endpoint tests

Provides a Flask app on a throwaway SQLite file, a test client, and a
login helper that simulates Flask-Login sessions for any member of the
reference cast.
"""

from types import SimpleNamespace

import pytest

from fixtures.people import make_people, walk_to

from permits.audit.events import reset_audit_events
from permits.realtime import reset_realtime_events
from permits.service import ReviewService
from webapp.extensions import db
from webapp.run import create_app


@pytest.fixture
def app(tmp_path, audit_log):
    """
    Create Flask app for testing.

    Function scoped: every test gets a fresh database file.
    """
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'api.db'}",
        'PERMITS_AUDIT_LOG_PATH': str(audit_log),
    })
    yield app
    with app.app_context():
        db.engine.dispose()
    reset_audit_events()
    reset_realtime_events()


@pytest.fixture
def client(app):
    """
    Create Flask test client.

    Returns an unauthenticated test client. Use login() to act as a user.
    """
    return app.test_client()


@pytest.fixture
def people(app):
    with app.app_context():
        return make_people(db.session)


@pytest.fixture
def login(client):
    """
    Log the test client in as an identity.

    Usage:
        login(people.compliance_officer).get('/api/v1/notifications/?unit=compliance')
    """
    def _login(identity):
        with client.session_transaction() as sess:
            sess['_user_id'] = str(identity.user_id)
            sess['_fresh'] = True
        return client

    return _login


@pytest.fixture
def make_application(app, people):
    """Create an application walked to ``state``; returns its id, reference and version."""
    def _make(state='draft', **kwargs):
        with app.app_context():
            application = walk_to(ReviewService(db.session), people, state, **kwargs)
            return SimpleNamespace(id=application.id, reference=application.reference,
                                   version=application.version)

    return _make
