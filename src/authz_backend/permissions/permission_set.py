"""
Typed permission sets for roles.

A PermissionSet is the resolved collection of CRUD grants of a single role. It
keeps the grouped JSON shape used by legacy role documents: one named field per
well-known resource plus an open ``custom`` map, every entry holding the same
four optional flags.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

CRUD_ACTIONS = ("create", "read", "update", "delete")
WILDCARD_ACTION = "*"

WELL_KNOWN_RESOURCES = (
    "users",
    "companies",
    "branches",
    "departments",
    "roles",
    "reports",
    "settings",
)


def expand_action(action: str) -> Tuple[str, ...]:
    """Actions a single grant row stands for"""
    action = action.lower()
    if action == WILDCARD_ACTION:
        return CRUD_ACTIONS
    if action in CRUD_ACTIONS:
        return (action,)
    return ()


class PermissionDetail(BaseModel):
    """CRUD flags for one resource. Unset means not granted."""
    create: Optional[bool] = None
    read: Optional[bool] = None
    update: Optional[bool] = None
    delete: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")

    def allows(self, action: str) -> bool:
        if action not in CRUD_ACTIONS:
            return False
        return getattr(self, action) is True

    def grant(self, action: str):
        for expanded in expand_action(action):
            setattr(self, expanded, True)

    def granted_actions(self) -> List[str]:
        return [action for action in CRUD_ACTIONS if getattr(self, action) is True]


class PermissionSet(BaseModel):
    """Grouped permissions of a role"""

    # Standard permissions
    users: Optional[PermissionDetail] = None
    companies: Optional[PermissionDetail] = None
    branches: Optional[PermissionDetail] = None
    departments: Optional[PermissionDetail] = None
    roles: Optional[PermissionDetail] = None
    reports: Optional[PermissionDetail] = None
    settings: Optional[PermissionDetail] = None

    # Any other resource, keyed by resource name
    custom: Optional[Dict[str, Optional[PermissionDetail]]] = None

    model_config = ConfigDict(extra="ignore")

    def detail_for(self, resource: str) -> Optional[PermissionDetail]:
        name = resource.lower()
        if name in WELL_KNOWN_RESOURCES:
            return getattr(self, name)
        if not self.custom:
            return None
        return self.custom.get(name)

    def is_granted(self, resource: str, action: str) -> bool:
        detail = self.detail_for(resource)
        if detail is None:
            return False
        return detail.allows(action.lower())

    def grant(self, resource: str, action: str):
        name = resource.lower()

        if name in WELL_KNOWN_RESOURCES:
            detail = getattr(self, name)
            if detail is None:
                detail = PermissionDetail()
                setattr(self, name, detail)
        else:
            if self.custom is None:
                self.custom = {}
            detail = self.custom.get(name)
            if detail is None:
                detail = PermissionDetail()
                self.custom[name] = detail

        detail.grant(action)

    def grants(self) -> List[Tuple[str, str]]:
        """Flatten into (resource, action) pairs, one per granted flag"""
        pairs: List[Tuple[str, str]] = []

        for name in WELL_KNOWN_RESOURCES:
            detail = getattr(self, name)
            if detail is not None:
                pairs.extend((name, action) for action in detail.granted_actions())

        for name in sorted(self.custom or {}):
            detail = self.custom[name]
            if detail is not None:
                pairs.extend((name, action) for action in detail.granted_actions())

        return pairs

    def is_empty(self) -> bool:
        return len(self.grants()) == 0

    def to_json(self) -> str:
        """Serialize in the legacy document layout: unset entries omitted, custom keys sorted"""
        data = self.model_dump(exclude_none=True)
        custom = data.pop("custom", None)
        if custom:
            data["custom"] = {key: custom[key] for key in sorted(custom)}
        return PermissionSet.model_validate(data).model_dump_json(exclude_none=True)


def build_permission_set(grants: Iterable[Tuple[str, str]]) -> PermissionSet:
    """Fold (resource, action) grant pairs into a PermissionSet"""

    permission_set = PermissionSet()

    for resource, action in grants:
        if not expand_action(action):
            logger.debug(f"Ignoring unknown action '{action}' for resource '{resource}'")
            continue
        permission_set.grant(resource, action)

    return permission_set


def parse_permission_document(raw: Optional[str | bytes]) -> PermissionSet:
    """
    Parse a legacy grouped permission document.

    Malformed documents resolve to an empty set instead of raising, so a bad
    historical row never takes authorization down.
    """
    if not raw:
        return PermissionSet()

    try:
        return PermissionSet.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Malformed permission document, treating as empty: {e.error_count()} error(s)")
        return PermissionSet()


def is_granted(permission_set: PermissionSet, resource: str, action: str) -> bool:
    return permission_set.is_granted(resource, action)
