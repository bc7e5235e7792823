from .identity import (
    UserType, StaffUnit, StaffPosition, POSITION_RANK, Identity, Profile
)
