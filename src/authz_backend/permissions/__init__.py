"""
Authorization core.

Main components:
- core: AuthorizationEvaluator, the permission decision entry point
- role_store: role permission resolution over normalized rows and legacy documents
- overrides: per-user override rules with time and IP restrictions
- membership: company memberships and their scoped roles
- catalog: the permission catalog and its default grants
- cache: best-effort permission cache and invalidation queue
- domain: global and company scope tokens
- permission_set: typed grouped permission sets
- auth: FastAPI dependencies
"""

from .domain import (
    GLOBAL_SCOPE,
    InvalidScopeError,
    build_scope,
    parse_scope,
    normalize_scope,
    canonical_company_id,
    is_global,
)

from .permission_set import (
    CRUD_ACTIONS,
    WILDCARD_ACTION,
    PermissionDetail,
    PermissionSet,
    build_permission_set,
    parse_permission_document,
    is_granted,
)

from .cache import (
    PermissionCache,
    InvalidationQueue,
    role_permissions_key,
    company_members_key,
    permissions_catalog_key,
)

from .overrides import (
    TimeRestriction,
    UserOverrideStore,
    evaluate_overrides,
    is_allowed_at_time,
)

from .role_store import (
    RolePermissionStore,
    NormalizedSource,
    LegacySource,
    EmptySource,
    PermissionSource,
)

from .membership import MembershipStore, MemberEntry
from .catalog import PermissionCatalog, PermissionEntry
from .core import AuthorizationEvaluator

__all__ = [
    # Scopes
    'GLOBAL_SCOPE',
    'InvalidScopeError',
    'build_scope',
    'parse_scope',
    'normalize_scope',
    'canonical_company_id',
    'is_global',
    # Permission sets
    'CRUD_ACTIONS',
    'WILDCARD_ACTION',
    'PermissionDetail',
    'PermissionSet',
    'build_permission_set',
    'parse_permission_document',
    'is_granted',
    # Cache
    'PermissionCache',
    'InvalidationQueue',
    'role_permissions_key',
    'company_members_key',
    'permissions_catalog_key',
    # Overrides
    'TimeRestriction',
    'UserOverrideStore',
    'evaluate_overrides',
    'is_allowed_at_time',
    # Roles
    'RolePermissionStore',
    'NormalizedSource',
    'LegacySource',
    'EmptySource',
    'PermissionSource',
    # Memberships and catalog
    'MembershipStore',
    'MemberEntry',
    'PermissionCatalog',
    'PermissionEntry',
    # Evaluator
    'AuthorizationEvaluator',
]
