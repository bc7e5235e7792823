"""
Transaction management utilities for permit management functions.

Management functions only flush; the context managers here own the single
commit boundary and translate record store failures into the permits
error taxonomy.
"""
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from permits.exceptions import ConcurrentModification, UpstreamUnavailable


@contextmanager
def store_errors():
    """
    Translate SQLAlchemy failures raised inside the block.

    StaleDataError means the version compare-and-swap matched no row, so
    another writer got there first. Connection loss, lock and pool timeouts
    surface as UpstreamUnavailable; nothing in the block counts as applied.
    """
    try:
        yield
    except StaleDataError as e:
        raise ConcurrentModification(str(e)) from e
    except (OperationalError, PoolTimeoutError) as e:
        raise UpstreamUnavailable(f"Record store unavailable: {e}") from e
    except DBAPIError as e:
        if e.connection_invalidated:
            raise UpstreamUnavailable(f"Record store connection lost: {e}") from e
        raise


@contextmanager
def management_transaction(session: Session):
    """
    Context manager ensuring commit/rollback for management functions.

    Usage:
        with management_transaction(db.session):
            result = transition(session, app_id, 'assess_pass', actor, expected_version=2)
            on_workflow_transition(session, result.event)
        # Auto-commits on success, rolls back on exception

    Args:
        session: SQLAlchemy session

    Yields:
        Session: The same session (for convenience)

    Raises:
        ConcurrentModification: If a versioned row changed underneath the commit
        UpstreamUnavailable: If the record store failed or timed out
        Any other exception raised within the context block (after rollback)
    """
    try:
        with store_errors():
            yield session
            session.commit()
    except Exception:
        session.rollback()
        raise
