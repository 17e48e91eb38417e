"""
Authorization decisions.

The evaluator answers "may this user perform this action on this resource,
optionally inside this company?" by consulting, in order, the user's
overrides, the super-admin bypass, the company-scoped role and the global
role. The first source that decides wins; nothing granted means deny.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from authz_backend.model.auth import User
from authz_backend.model.company import CompanyMember
from authz_backend.model.role import Role
from authz_backend.permissions.cache import PermissionCache
from authz_backend.permissions.domain import GLOBAL_SCOPE, build_scope, parse_scope
from authz_backend.permissions.membership import MembershipStore
from authz_backend.permissions.overrides import UserOverrideStore, evaluate_overrides
from authz_backend.permissions.permission_set import CRUD_ACTIONS, PermissionSet
from authz_backend.permissions.role_store import RolePermissionStore
from authz_backend.repositories.base import NotFoundError
from authz_backend.settings import BackendSettings, settings as default_settings

logger = logging.getLogger(__name__)


class AuthorizationEvaluator:
    """Decides permission checks for users, globally or within a company"""

    def __init__(
        self,
        db: Session,
        cache: Optional[PermissionCache] = None,
        clock: Callable[[], datetime] = datetime.now,
        settings: Optional[BackendSettings] = None,
    ):
        """
        Args:
            db: SQLAlchemy session used for all lookups
            cache: Permission cache, defaults to one backed by the shared Redis client
            clock: Source of the current instant for time-restricted overrides
            settings: Backend settings, defaults to the process settings
        """
        self.db = db
        self.cache = cache or PermissionCache()
        self.clock = clock
        self.settings = settings or default_settings

        self.overrides = UserOverrideStore(db)
        self.roles = RolePermissionStore(db, self.cache)
        self.memberships = MembershipStore(db, self.cache)

    def _get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _global_role(self, user: User) -> Optional[Role]:
        if user.role_id is None:
            return None
        return self.roles.get_by_id_optional(user.role_id)

    def _is_super_admin(self, role: Optional[Role]) -> bool:
        return role is not None and role.is_active and role.name == self.settings.SUPER_ADMIN_ROLE

    async def is_allowed(
        self,
        user_id: str,
        resource: str,
        action: str,
        company_id: Optional[str] = None,
        *,
        client_ip: Optional[str] = None,
    ) -> bool:
        """
        Decide a single permission check.

        Raises:
            NotFoundError: If the user does not exist
            InvalidScopeError: If company_id is not a valid UUID
            SQLAlchemyError: If a store lookup fails
        """
        action = action.lower()
        scope = build_scope(company_id)
        company_id = parse_scope(scope)

        user = self._get_user(user_id)

        # 1. Overrides, highest priority first
        decision = evaluate_overrides(
            self.overrides.list_for(user_id, resource), action, scope, self.clock(), client_ip
        )
        if decision is not None:
            logger.debug(f"Override decided {resource}.{action} for user {user_id} in {scope}: {decision}")
            return decision

        # 2. Super-admin bypass
        global_role = self._global_role(user)
        if self._is_super_admin(global_role):
            logger.debug(f"Super admin {user_id} allowed {resource}.{action}")
            return True

        # 3. Company-scoped role
        if company_id is not None:
            membership = self.memberships.active_membership(user_id, company_id)
            if membership is not None:
                permissions = await self.roles.effective_permissions(membership.role_id)
                if permissions.is_granted(resource, action):
                    logger.debug(f"Company role {membership.role_id} allowed {resource}.{action} for user {user_id}")
                    return True

        # 4. Global role
        if global_role is not None:
            permissions = await self.roles.effective_permissions(global_role.id)
            if permissions.is_granted(resource, action):
                logger.debug(f"Global role {global_role.id} allowed {resource}.{action} for user {user_id}")
                return True

        logger.debug(f"Denied {resource}.{action} for user {user_id} in {scope}")
        return False

    async def is_allowed_system(self, user_id: str, resource: str, action: str) -> bool:
        return await self.is_allowed(user_id, resource, action)

    async def is_allowed_company(self, user_id: str, resource: str, action: str, company_id: str) -> bool:
        return await self.is_allowed(user_id, resource, action, company_id)

    async def allowed_actions(self, user_id: str, resource: str, company_id: Optional[str] = None,
                              client_ip: Optional[str] = None) -> Dict[str, bool]:
        """CRUD decisions for one resource"""
        return {
            action: await self.is_allowed(user_id, resource, action, company_id, client_ip=client_ip)
            for action in CRUD_ACTIONS
        }

    async def effective_permissions(self, role_id: str) -> PermissionSet:
        return await self.roles.effective_permissions(role_id)

    async def invalidate_role(self, role_id: str) -> bool:
        return await self.roles.invalidate(role_id)

    def roles_for_user(self, user_id: str, scope: str = GLOBAL_SCOPE) -> List[str]:
        """Names of the roles a user holds in a scope"""
        company_id = parse_scope(scope)

        if company_id is None:
            role = self._global_role(self._get_user(user_id))
            return [role.name] if role is not None and role.name else []

        rows = (
            self.db.query(Role.name)
            .join(CompanyMember, CompanyMember.role_id == Role.id)
            .filter(
                CompanyMember.user_id == user_id,
                CompanyMember.company_id == company_id,
                CompanyMember.is_active == True,
            )
            .all()
        )
        return [name for (name,) in rows if name]

    def users_for_role(self, role_name: str, scope: str = GLOBAL_SCOPE) -> List[str]:
        """Ids of the users holding a named role in a scope"""
        company_id = parse_scope(scope)

        if company_id is None:
            rows = (
                self.db.query(User.id)
                .join(Role, Role.id == User.role_id)
                .filter(Role.name == role_name)
                .order_by(User.id)
                .all()
            )
        else:
            rows = (
                self.db.query(CompanyMember.user_id)
                .join(Role, Role.id == CompanyMember.role_id)
                .filter(
                    Role.name == role_name,
                    CompanyMember.company_id == company_id,
                    CompanyMember.is_active == True,
                )
                .order_by(CompanyMember.user_id)
                .all()
            )

        return [user_id for (user_id,) in rows]
