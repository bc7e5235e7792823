"""
Flask-Login user wrapper for the permits Profile model.

This provides a thin adapter between Profile and Flask-Login's requirements.
"""

from flask_login import UserMixin

from permits.core.identity import Identity, Profile


class AuthUser(UserMixin):
    """
    Flask-Login compatible user wrapper.

    Wraps a Profile so request handlers can hand an immutable Identity to
    the review core.
    """

    def __init__(self, profile: Profile):
        self.profile = profile
        self._identity = None

    def get_id(self):
        """Return user ID as string (required by Flask-Login)."""
        return str(self.profile.user_id)

    @property
    def is_active(self):
        return self.profile.is_active

    @property
    def user_id(self):
        return self.profile.user_id

    @property
    def email(self):
        return self.profile.email

    @property
    def full_name(self):
        return self.profile.full_name

    @property
    def identity(self) -> Identity:
        """Authorization triple, fixed for the rest of the request."""
        if self._identity is None:
            self._identity = self.profile.to_identity()
        return self._identity

    def __repr__(self):
        return f"<AuthUser {self.profile.email}>"
