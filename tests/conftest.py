#-------------------------------------------------------------------------bh-
# pytest configuration and fixtures for the permits review core
#-------------------------------------------------------------------------eh-

import sys
from pathlib import Path

import pytest

# Add project src and tests to path for imports
PROJ_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJ_ROOT / 'src'))
sys.path.insert(0, str(PROJ_ROOT / 'tests'))

from fixtures.people import make_people, walk_to
from fixtures.test_config import create_test_engine, create_test_session_factory

from permits.applications import Application
from permits.audit.events import init_audit_events, reset_audit_events
from permits.audit.logger import reset_audit_logger
from permits.realtime import LocalChangeFeed, init_realtime_events, reset_realtime_events
from permits.service import ReviewService


@pytest.fixture(autouse=True)
def audit_log(tmp_path, monkeypatch):
    """Point the audit logger at a per-test file."""
    path = tmp_path / 'audit.log'
    monkeypatch.setenv('PERMITS_AUDIT_LOG_PATH', str(path))
    reset_audit_logger()
    yield path
    reset_audit_logger()


@pytest.fixture
def engine(tmp_path):
    engine = create_test_engine(tmp_path / 'permits.db')
    yield engine
    engine.dispose()


@pytest.fixture
def feed():
    return LocalChangeFeed()


@pytest.fixture
def SessionFactory(engine, feed, audit_log):
    """Session factory with audit and realtime hooks attached."""
    factory = create_test_session_factory(engine)
    init_audit_events(target=factory)
    init_realtime_events(feed, target=factory)
    yield factory
    reset_audit_events()
    reset_realtime_events()


@pytest.fixture
def session(SessionFactory):
    """
    Provide a test session.

    Each test has its own database file, so committed data does not leak
    between tests.
    """
    session = SessionFactory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def service(session):
    return ReviewService(session)


@pytest.fixture
def people(session):
    return make_people(session)


@pytest.fixture
def make_application(service, people):
    """
    Factory creating an application and walking it along the happy path.

    Usage:
        app = make_application('compliance_review')
        app = make_application('submitted', application_type='enforcement_response')
    """
    def _make(state='draft', **kwargs) -> Application:
        return walk_to(service, people, state, **kwargs)

    return _make
