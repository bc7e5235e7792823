from .access import (
    AccessPolicy,
    authorize,
    position_at_least,
    load_route_policies,
    get_route_policy,
    ROUTE_POLICIES,
)
