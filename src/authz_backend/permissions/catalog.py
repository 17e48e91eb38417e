"""
Permission catalog.

The catalog lists the resources permissions can be granted on. Creating an
entry seeds default grants into the catalog admin role (all actions) and the
baseline role (read only) when those roles exist.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.orm import Session

from authz_backend.model.role import Permission, Role, RolePermission
from authz_backend.permissions.cache import (
    PermissionCache,
    permissions_catalog_key,
    role_permissions_key,
)
from authz_backend.permissions.permission_set import WILDCARD_ACTION, parse_permission_document
from authz_backend.repositories.base import BaseRepository, DuplicateError, NotFoundError
from authz_backend.settings import BackendSettings, settings as default_settings

logger = logging.getLogger(__name__)


class PermissionEntry(BaseModel):
    id: str
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class PermissionCatalogSnapshot(BaseModel):
    include_inactive: bool = False
    permissions: List[PermissionEntry] = Field(default_factory=list)


class PermissionCatalog(BaseRepository[Permission]):

    def __init__(self, db: Session, cache: PermissionCache, settings: Optional[BackendSettings] = None):
        super().__init__(db, Permission)
        self.cache = cache
        self.settings = settings or default_settings

    def get_by_name(self, name: str) -> Optional[Permission]:
        return self.db.query(Permission).filter(Permission.name == name).first()

    def _get_by_name_or_raise(self, name: str) -> Permission:
        permission = self.get_by_name(name)
        if permission is None:
            raise NotFoundError("Permission", name)
        return permission

    def _snapshot_keys(self) -> List[str]:
        return [permissions_catalog_key(False), permissions_catalog_key(True)]

    async def list_permissions(self, include_inactive: bool = False) -> List[PermissionEntry]:
        cached = await self.cache.get_catalog(include_inactive)
        if cached is not None:
            try:
                return PermissionCatalogSnapshot.model_validate_json(cached).permissions
            except ValidationError:
                logger.warning("Discarding unreadable permission catalog snapshot")

        query = self.db.query(Permission)
        if not include_inactive:
            query = query.filter(Permission.is_active == True)

        entries = [PermissionEntry.model_validate(p) for p in query.order_by(Permission.name).all()]

        snapshot = PermissionCatalogSnapshot(include_inactive=include_inactive, permissions=entries)
        await self.cache.set_catalog(snapshot.model_dump_json(), include_inactive)
        return entries

    def _seed_role(self, role_name: str, resource: str, action: str) -> Optional[str]:
        """Grant one action on a new resource to a named role. Returns the role id when seeded."""
        role = self.db.query(Role).filter(Role.name == role_name).first()
        if role is None:
            logger.debug(f"Role '{role_name}' not found, skipping default grant on {resource}")
            return None

        has_rows = self.db.query(RolePermission.id).filter(RolePermission.role_id == role.id).first() is not None

        if not has_rows and role.permissions:
            # Rows would shadow the whole document, so extend the document instead
            document = parse_permission_document(role.permissions)
            document.grant(resource, action)
            role.permissions = document.to_json()
        else:
            exists = (
                self.db.query(RolePermission.id)
                .filter(
                    RolePermission.role_id == role.id,
                    RolePermission.resource == resource,
                    RolePermission.action == action,
                )
                .first()
            )
            if exists is None:
                self.db.add(RolePermission(role_id=role.id, resource=resource, action=action, effect="allow"))

        return role.id

    async def create_permission(
        self,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
        seed_defaults: bool = True,
    ) -> Permission:
        """
        Add a catalog entry.

        Raises:
            DuplicateError: If an entry with the same name exists
            ValueError: If the name is empty
            RepositoryError: If the write fails
        """
        name = (name or "").strip().lower()
        if not name:
            raise ValueError("Permission name must not be empty")

        if self.get_by_name(name) is not None:
            raise DuplicateError("Permission", {"name": name})

        permission = Permission(
            name=name,
            display_name=display_name or name,
            description=description,
            is_active=True,
            created_by_id=created_by,
        )
        self.db.add(permission)

        seeded: List[str] = []
        if seed_defaults:
            for role_name, action in (
                (self.settings.CATALOG_ADMIN_ROLE, WILDCARD_ACTION),
                (self.settings.CATALOG_BASELINE_ROLE, "read"),
            ):
                role_id = self._seed_role(role_name, name, action)
                if role_id is not None:
                    seeded.append(role_id)

        self.commit("create")
        self.db.refresh(permission)

        logger.info(f"Created permission {name}, default grants for {len(seeded)} role(s)")
        self.cache.schedule_invalidation(
            *self._snapshot_keys(),
            *(role_permissions_key(role_id) for role_id in seeded),
        )
        return permission

    async def update_permission(
        self,
        name: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Permission:
        permission = self._get_by_name_or_raise(name)

        if display_name is not None:
            permission.display_name = display_name
        if description is not None:
            permission.description = description
        if is_active is not None:
            permission.is_active = is_active

        self.commit("update")

        logger.info(f"Updated permission {name}")
        self.cache.schedule_invalidation(*self._snapshot_keys())
        return permission

    async def delete_permission(self, name: str) -> bool:
        """
        Remove a catalog entry together with every role row granting on it.
        Legacy role documents are left untouched.
        """
        permission = self._get_by_name_or_raise(name)

        role_ids = [
            role_id for (role_id,) in
            self.db.query(RolePermission.role_id).filter(RolePermission.resource == name).distinct().all()
        ]

        self.db.query(RolePermission).filter(RolePermission.resource == name).delete()
        self.db.delete(permission)
        self.commit("delete")

        logger.info(f"Deleted permission {name} and its grants on {len(role_ids)} role(s)")
        self.cache.schedule_invalidation(
            *self._snapshot_keys(),
            *(role_permissions_key(role_id) for role_id in role_ids),
        )
        return True
