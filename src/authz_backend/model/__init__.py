from .base import Base, metadata
from .auth import User, UserPermission
from .role import Role, RolePermission, Permission
from .company import Company, CompanyMember

__all__ = [
    'Base',
    'metadata',
    # Auth models
    'User',
    'UserPermission',
    # Role/Permission models
    'Role',
    'RolePermission',
    'Permission',
    # Company models
    'Company',
    'CompanyMember',
]
