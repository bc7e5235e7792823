from .applications import (
    ApplicationType,
    ApplicationStatus,
    REFERENCE_PREFIXES,
    Application,
    ApplicationTransition,
)
from .reviews import ReviewRecord
