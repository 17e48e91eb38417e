"""
Role permission storage and resolution.

A role's permissions exist in two shapes: normalized ``role_permissions``
rows and a legacy grouped JSON document on the role itself. Rows are
authoritative whenever at least one exists; the document is only read for
roles that have none. The two are never merged.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from authz_backend.model.role import Role, RolePermission
from authz_backend.permissions.cache import PermissionCache, role_permissions_key
from authz_backend.permissions.permission_set import (
    PermissionSet,
    build_permission_set,
    expand_action,
    parse_permission_document,
)
from authz_backend.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedSource:
    """Role permissions backed by role_permissions rows"""
    grants: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class LegacySource:
    """Role permissions backed by the grouped JSON document"""
    document: str


@dataclass(frozen=True)
class EmptySource:
    """Role without permissions, unknown or inactive"""


PermissionSource = Union[NormalizedSource, LegacySource, EmptySource]


class RolePermissionStore(BaseRepository[Role]):
    """Resolves and mutates role permissions, keeping the role cache in step"""

    def __init__(self, db: Session, cache: PermissionCache):
        super().__init__(db, Role)
        self.cache = cache

    # Reads

    def get_role_by_name(self, name: str) -> Optional[Role]:
        return self.db.query(Role).filter(Role.name == name).first()

    def list_role_permissions(self, role_id: str) -> List[RolePermission]:
        return (
            self.db.query(RolePermission)
            .filter(RolePermission.role_id == role_id)
            .order_by(RolePermission.resource, RolePermission.action)
            .all()
        )

    def load_source(self, role_id: str) -> PermissionSource:
        role = self.get_by_id_optional(role_id)
        if role is None or not role.is_active:
            return EmptySource()

        rows = (
            self.db.query(RolePermission.resource, RolePermission.action)
            .filter(RolePermission.role_id == role_id, RolePermission.effect == "allow")
            .all()
        )

        if rows:
            return NormalizedSource(grants=tuple((resource, action) for resource, action in rows))

        if role.permissions:
            return LegacySource(document=role.permissions)

        return EmptySource()

    async def effective_permissions(self, role_id: str) -> PermissionSet:
        """Read-through resolution of a role's permission set"""

        cached = await self.cache.get_role_permissions(role_id)
        if cached is not None:
            return parse_permission_document(cached)

        source = self.load_source(role_id)

        if isinstance(source, NormalizedSource):
            permission_set = build_permission_set(source.grants)
            await self.cache.set_role_permissions(role_id, permission_set.to_json())
            return permission_set

        if isinstance(source, LegacySource):
            # Cache the stored document verbatim, not a re-serialized copy
            await self.cache.set_role_permissions(role_id, source.document)
            return parse_permission_document(source.document)

        return PermissionSet()

    # Writes

    def _schedule_invalidation(self, *role_ids: str):
        self.cache.schedule_invalidation(*(role_permissions_key(role_id) for role_id in role_ids))

    async def replace_role_permissions(self, role_id: str, grants: Iterable[Tuple[str, str]],
                                       priority: int = 0) -> List[RolePermission]:
        """
        Replace all normalized rows of a role.

        Duplicate (resource, action) pairs are collapsed. An empty grant list
        leaves the role without rows, so its legacy document applies again.

        Raises:
            NotFoundError: If the role does not exist
            ValueError: On an unknown action
            RepositoryError: If the write fails
        """
        self.get_by_id(role_id)

        seen = set()
        rows: List[RolePermission] = []
        for resource, action in grants:
            action = action.lower()
            if not expand_action(action):
                raise ValueError(f"Unknown action '{action}' for resource '{resource}'")
            key = (resource, action)
            if key in seen:
                continue
            seen.add(key)
            rows.append(RolePermission(role_id=role_id, resource=resource, action=action,
                                       effect="allow", priority=priority))

        self.db.query(RolePermission).filter(RolePermission.role_id == role_id).delete()
        self.db.add_all(rows)
        self.commit("replace permissions of")

        logger.info(f"Saved {len(rows)} permission rows for role {role_id}")
        self._schedule_invalidation(role_id)
        return rows

    async def replace_from_permission_set(self, role_id: str, permission_set: PermissionSet) -> List[RolePermission]:
        return await self.replace_role_permissions(role_id, permission_set.grants())

    async def update_legacy_permissions(self, role_id: str, permissions: PermissionSet | str) -> Role:
        """Store the grouped permission document of a role"""
        role = self.get_by_id(role_id)

        role.permissions = permissions.to_json() if isinstance(permissions, PermissionSet) else permissions
        self.commit("update")

        logger.info(f"Updated permission document of role {role_id}")
        self._schedule_invalidation(role_id)
        return role

    async def set_role_active(self, role_id: str, is_active: bool) -> Role:
        role = self.get_by_id(role_id)

        role.is_active = is_active
        self.commit("update")

        logger.info(f"Role {role_id} {'activated' if is_active else 'deactivated'}")
        self._schedule_invalidation(role_id)
        return role

    async def delete_role(self, role_id: str) -> bool:
        role = self.get_by_id(role_id)

        # role_permissions rows go with the role through the cascade
        self.db.delete(role)
        self.commit("delete")

        logger.info(f"Deleted role {role_id}")
        self._schedule_invalidation(role_id)
        return True

    async def copy_role_permissions(self, src_role_id: str, dst_role_id: str) -> List[RolePermission]:
        """Give the destination role the source role's effective grants as rows"""
        self.get_by_id(src_role_id)

        source = self.load_source(src_role_id)
        if isinstance(source, NormalizedSource):
            grants = list(source.grants)
        elif isinstance(source, LegacySource):
            grants = parse_permission_document(source.document).grants()
        else:
            grants = []

        return await self.replace_role_permissions(dst_role_id, grants)

    async def invalidate(self, role_id: str) -> bool:
        """Drop the cached set of a role now, waiting for the cache round-trip"""
        removed = await self.cache.invalidate_role(role_id)
        logger.info(f"Invalidated permission cache of role {role_id}")
        return removed