"""Authentication context and access rules"""

from lifeline_core.auth.access_policy import AllowAllAccessPolicy, OwnershipAccessPolicy
from lifeline_core.auth.request_context import RequestContext, get_request_context, require_role

__all__ = [
    "RequestContext",
    "get_request_context",
    "require_role",
    "OwnershipAccessPolicy",
    "AllowAllAccessPolicy",
]
