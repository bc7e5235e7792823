"""
Concurrent writers against the same application.

Two sessions on the same database file stand in for two request handlers:
both read the application at the same version, one commits first, and the
other must fail with ConcurrentModification instead of overwriting.
"""
import pytest
from sqlalchemy import select

from permits.applications import Application, ApplicationTransition
from permits.exceptions import ConcurrentModification
from permits.manage.workflow import transition
from permits.notifications.models import Notification
from permits.service import ReviewService


@pytest.fixture
def second_session(SessionFactory):
    session = SessionFactory()
    yield session
    session.rollback()
    session.close()


class TestOptimisticLocking:

    def test_stale_writer_fails_at_flush(self, make_application, service, people, second_session, session):
        app = make_application('compliance_review')

        # Reader B loads the application before A writes
        stale = second_session.get(Application, app.id)
        assert stale.version == 6

        service.apply_transition(app.id, 'approve', people.compliance_officer, 6)

        with pytest.raises(ConcurrentModification):
            transition(second_session, app.id, 'reject', people.compliance_manager, 6)
        second_session.rollback()

        session.expire_all()
        current = session.get(Application, app.id)
        assert current.status == 'directorate_review'
        assert current.version == 7

        history = session.scalars(
            select(ApplicationTransition.action)
            .where(ApplicationTransition.application_id == app.id, ApplicationTransition.version == 7)
        ).all()
        assert history == ['approve']

    def test_losing_service_call_commits_nothing(self, make_application, service, people, second_session, session):
        app = make_application('compliance_review')
        other = ReviewService(second_session)
        second_session.get(Application, app.id)

        service.apply_transition(app.id, 'approve', people.compliance_officer, 6)
        notified = session.scalars(select(Notification.id)).all()

        with pytest.raises(ConcurrentModification):
            other.apply_transition(app.id, 'reject', people.compliance_manager, 6)

        session.expire_all()
        assert session.scalars(select(Notification.id)).all() == notified
        assert session.get(Application, app.id).status == 'directorate_review'

    def test_retry_after_reread_succeeds(self, make_application, service, people, second_session):
        app = make_application('compliance_review')
        other = ReviewService(second_session)
        second_session.get(Application, app.id)

        service.apply_transition(app.id, 'approve', people.compliance_officer, 6)
        with pytest.raises(ConcurrentModification):
            other.apply_transition(app.id, 'reject', people.compliance_manager, 6)

        # Directorate now owns the application; the director re-reads and acts
        fresh = second_session.get(Application, app.id)
        assert fresh.version == 7
        result = other.apply_transition(app.id, 'approve', people.director, fresh.version)
        assert result.status == 'approved'
