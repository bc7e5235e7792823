"""
Access policy evaluation for the permit portal.

A policy is plain data: optional allow-lists over the three identity
dimensions (user type, staff unit, staff position). Route and workflow
guards reference named policies instead of repeating inline checks.

Usage:
    from permits.security.access import authorize, get_route_policy

    if not authorize(identity, get_route_policy('compliance_dashboard')):
        abort(403)
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Optional

import yaml

from permits.core.identity import (
    Identity, UserType, StaffUnit, StaffPosition, POSITION_RANK
)
from permits.exceptions import ConfigError


logger = logging.getLogger(__name__)

POLICY_FILE = Path(__file__).parent / 'policies.yaml'


def _frozen(enum_cls, values: Optional[Iterable]) -> Optional[FrozenSet]:
    if not values:
        return None
    return frozenset(enum_cls(v) for v in values)


@dataclass(frozen=True)
class AccessPolicy:
    """
    Named rule set. A missing or empty allow-list places no restriction
    on that dimension.
    """
    name: str
    allowed_roles: Optional[FrozenSet[UserType]] = None
    allowed_units: Optional[FrozenSet[StaffUnit]] = None
    allowed_positions: Optional[FrozenSet[StaffPosition]] = None

    def __post_init__(self):
        object.__setattr__(self, 'allowed_roles', _frozen(UserType, self.allowed_roles))
        object.__setattr__(self, 'allowed_units', _frozen(StaffUnit, self.allowed_units))
        object.__setattr__(self, 'allowed_positions', _frozen(StaffPosition, self.allowed_positions))

    @property
    def is_open(self) -> bool:
        """True when the policy admits every identity."""
        return not (self.allowed_roles or self.allowed_units or self.allowed_positions)


def authorize(identity: Optional[Identity], policy: AccessPolicy) -> bool:
    """
    Decide whether an identity satisfies a policy.

    Total function: a missing or malformed identity is denied rather than
    raising.

    Args:
        identity: Caller identity (None for anonymous callers)
        policy: AccessPolicy to evaluate

    Returns:
        True if allowed, False otherwise
    """
    if identity is None:
        return False

    try:
        user_type = UserType(identity.user_type)
    except (AttributeError, ValueError):
        return False

    if user_type == UserType.SUPER_ADMIN:
        return True

    if policy.allowed_roles and user_type not in policy.allowed_roles:
        return False

    # Unit and position are staff-only dimensions
    if user_type != UserType.STAFF:
        return True

    if policy.allowed_units and _member(StaffUnit, identity.staff_unit) not in policy.allowed_units:
        return False

    if policy.allowed_positions and \
            _member(StaffPosition, identity.staff_position) not in policy.allowed_positions:
        return False

    return True


def _member(enum_cls, value):
    """Enum member for value, or None when absent/unknown."""
    try:
        return enum_cls(value) if value is not None else None
    except ValueError:
        return None


def position_at_least(identity: Optional[Identity], position: StaffPosition) -> bool:
    """Check a staff identity holds the given position or a more senior one."""
    held = _member(StaffPosition, getattr(identity, 'staff_position', None))
    if held is None:
        return False
    return POSITION_RANK[held] >= POSITION_RANK[StaffPosition(position)]


def load_route_policies(path=None) -> Dict[str, AccessPolicy]:
    """
    Load named route policies from YAML.

    File format:
        compliance_dashboard:
          roles: [staff]
          units: [compliance]
          positions: [manager, director]

    Raises:
        ConfigError: If the file is missing or names an unknown role/unit/position
    """
    path = Path(path) if path else POLICY_FILE
    if not path.exists():
        raise ConfigError(f"Policy file not found: {path}")

    with open(path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    policies = {}
    for name, entry in raw.items():
        entry = entry or {}
        try:
            policies[name] = AccessPolicy(
                name=name,
                allowed_roles=entry.get('roles'),
                allowed_units=entry.get('units'),
                allowed_positions=entry.get('positions'),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid policy '{name}' in {path}: {e}")

    logger.debug(f"Loaded {len(policies)} route policies from {path}")
    return policies


ROUTE_POLICIES = load_route_policies()


def get_route_policy(name: str) -> AccessPolicy:
    """Look up a named route policy. Raises KeyError for unknown names."""
    return ROUTE_POLICIES[name]
