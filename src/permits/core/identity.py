#-------------------------------------------------------------------------bh-
# Common Imports:
from ..base import *
from dataclasses import dataclass
from enum import Enum
#-------------------------------------------------------------------------eh-


#-------------------------------------------------------------------------bm-
class UserType(str, Enum):
    PUBLIC = 'public'
    STAFF = 'staff'
    ADMIN = 'admin'
    SUPER_ADMIN = 'super_admin'


class StaffUnit(str, Enum):
    REGISTRY = 'registry'
    REVENUE = 'revenue'
    COMPLIANCE = 'compliance'
    FINANCE = 'finance'
    DIRECTORATE = 'directorate'
    SYSTEMS_ADMIN = 'systems_admin'


class StaffPosition(str, Enum):
    OFFICER = 'officer'
    MANAGER = 'manager'
    DIRECTOR = 'director'
    MANAGING_DIRECTOR = 'managing_director'


# Escalation authority: officer < manager < director < managing_director
POSITION_RANK = {
    StaffPosition.OFFICER: 0,
    StaffPosition.MANAGER: 1,
    StaffPosition.DIRECTOR: 2,
    StaffPosition.MANAGING_DIRECTOR: 3,
}


def _coerce(enum_cls, value):
    if value is None or isinstance(value, enum_cls):
        return value
    return enum_cls(value)


@dataclass(frozen=True)
class Identity:
    """
    Authorization attributes of a caller for the duration of one request.

    Supplied by the identity provider (see Profile.to_identity). Unit and
    position only mean something for staff, so they are dropped for every
    other user type.
    """
    user_id: int
    user_type: UserType
    staff_unit: Optional[StaffUnit] = None
    staff_position: Optional[StaffPosition] = None

    def __post_init__(self):
        user_type = _coerce(UserType, self.user_type)
        object.__setattr__(self, 'user_type', user_type)
        if user_type == UserType.STAFF:
            object.__setattr__(self, 'staff_unit', _coerce(StaffUnit, self.staff_unit))
            object.__setattr__(self, 'staff_position', _coerce(StaffPosition, self.staff_position))
        else:
            object.__setattr__(self, 'staff_unit', None)
            object.__setattr__(self, 'staff_position', None)

    @property
    def is_staff(self) -> bool:
        return self.user_type == UserType.STAFF

    @property
    def is_super_admin(self) -> bool:
        return self.user_type == UserType.SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        """Admins and super admins."""
        return self.user_type in (UserType.ADMIN, UserType.SUPER_ADMIN)

    def __str__(self):
        if self.is_staff:
            unit = getattr(self.staff_unit, 'value', '-')
            position = getattr(self.staff_position, 'value', '-')
            return f"{self.user_id}:{unit}/{position}"
        return f"{self.user_id}:{self.user_type.value}"


#----------------------------------------------------------------------------
class Profile(TimestampMixin, ActiveFlagMixin, Base):
    """
    Portal user profile as maintained by the identity provider.

    Only the authorization triple is consumed by the review core; sign-in
    and sessions are handled elsewhere.
    """
    __tablename__ = 'profiles'

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255))
    user_type = Column(String(20), nullable=False, default=UserType.PUBLIC.value)
    staff_unit = Column(String(20))
    staff_position = Column(String(20))

    @classmethod
    def get_by_email(cls, session, email: str) -> Optional['Profile']:
        return session.query(cls).filter_by(email=email).first()

    def to_identity(self) -> Identity:
        return Identity(
            user_id=self.user_id,
            user_type=self.user_type,
            staff_unit=self.staff_unit,
            staff_position=self.staff_position,
        )

    def __str__(self):
        return f"{self.email}"

    def __repr__(self):
        return (f"<Profile(user_id={self.user_id}, email='{self.email}', "
                f"user_type='{self.user_type}', staff_unit='{self.staff_unit}')>")
#-------------------------------------------------------------------------em-
