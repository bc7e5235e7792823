"""
Exception taxonomy for the permit review core.

Every error raised by the policy, workflow and notification layers derives
from PermitsError. The web layer maps ``status_code`` and ``code`` onto JSON
error responses; ``retryable`` tells callers whether re-reading and trying
again can succeed.
"""


class PermitsError(Exception):
    """Base exception for all permit review errors."""
    status_code = 500
    code = 'PERMITS_ERROR'
    retryable = False

    def __init__(self, message: str = None, **details):
        super().__init__(message or self.__class__.__doc__)
        self.details = details

    def to_dict(self):
        data = {'error': str(self), 'code': self.code, 'retryable': self.retryable}
        if self.details:
            data['details'] = {k: str(v) for k, v in self.details.items()}
        return data


class Unauthorized(PermitsError):
    """Actor is not permitted to perform this action."""
    status_code = 403
    code = 'UNAUTHORIZED'


class Forbidden(PermitsError):
    """Actor may not change the read state of this notification."""
    status_code = 403
    code = 'FORBIDDEN'


class InvalidTransition(PermitsError):
    """No such edge in the workflow transition table."""
    status_code = 409
    code = 'INVALID_TRANSITION'


class ConcurrentModification(PermitsError):
    """Record was modified by another writer; re-read and retry."""
    status_code = 409
    code = 'CONCURRENT_MODIFICATION'
    retryable = True


class NotFound(PermitsError):
    """Referenced record does not exist."""
    status_code = 404
    code = 'NOT_FOUND'


class UpstreamUnavailable(PermitsError):
    """Record store or push channel failed or timed out; nothing was applied."""
    status_code = 503
    code = 'UPSTREAM_UNAVAILABLE'
    retryable = True


class ConfigError(PermitsError):
    """Raised for configuration errors."""
    code = 'CONFIG_ERROR'
