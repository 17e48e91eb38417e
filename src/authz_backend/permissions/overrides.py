"""
Per-user permission overrides.

Overrides are read fresh on every check and are never cached. They are
evaluated by priority, highest first, and the first applicable row decides.
"""

import ipaddress
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from authz_backend.model.auth import UserPermission
from authz_backend.repositories.base import BaseRepository
from authz_backend.permissions.domain import GLOBAL_SCOPE, InvalidScopeError, normalize_scope
from authz_backend.permissions.permission_set import CRUD_ACTIONS, WILDCARD_ACTION

logger = logging.getLogger(__name__)


class TimeRestriction(BaseModel):
    """Validity window of an override"""

    # ISO weekdays, Monday=1 ... Sunday=7
    allowed_days: Optional[List[int]] = Field(None, description="Allowed ISO weekdays")
    # 24h "HH:MM"
    start_time: Optional[str] = Field(None, description="Start of the daily window")
    end_time: Optional[str] = Field(None, description="End of the daily window")
    start_date: Optional[datetime] = Field(None, description="Not valid before")
    end_date: Optional[datetime] = Field(None, description="Not valid after")

    def is_allowed_at_time(self, instant: datetime) -> bool:
        if self.start_date is not None and _aware(instant) < _aware(self.start_date):
            return False
        if self.end_date is not None and _aware(instant) > _aware(self.end_date):
            return False

        if self.allowed_days and instant.isoweekday() not in self.allowed_days:
            return False

        # Plain string comparison: windows crossing midnight never match
        if self.start_time and self.end_time:
            current_time = instant.strftime("%H:%M")
            if current_time < self.start_time or current_time > self.end_time:
                return False

        return True


def _aware(value: datetime) -> datetime:
    # Naive values are local time
    return value if value.tzinfo is not None else value.astimezone()


def is_allowed_at_time(restriction: Optional[TimeRestriction], instant: datetime) -> bool:
    if restriction is None:
        return True
    return restriction.is_allowed_at_time(instant)


def ip_allowed(allowed_ips: Optional[Iterable[str]], client_ip: Optional[str]) -> bool:
    """Check a client address against a list of IPs or CIDR ranges"""
    entries = [entry.strip() for entry in (allowed_ips or []) if entry and entry.strip()]
    if not entries:
        return True
    if not client_ip:
        return False

    try:
        address = ipaddress.ip_address(client_ip)
    except ValueError:
        return False

    for entry in entries:
        try:
            if "/" in entry:
                if address in ipaddress.ip_network(entry, strict=False):
                    return True
            elif address == ipaddress.ip_address(entry):
                return True
        except ValueError:
            logger.warning(f"Ignoring invalid allowed_ips entry '{entry}'")

    return False


def action_matches(row_action: str, action: str) -> bool:
    return row_action == WILDCARD_ACTION or row_action == action


def restriction_of(row: UserPermission) -> Optional[TimeRestriction]:
    if not row.time_restriction:
        return None
    return TimeRestriction.model_validate(row.time_restriction)


def domain_matches(row: UserPermission, scope: str) -> bool:
    """Global rows apply everywhere, company rows only in their own company"""
    if row.domain == GLOBAL_SCOPE or row.domain == scope:
        return True
    try:
        return normalize_scope(row.domain) == scope
    except InvalidScopeError:
        logger.warning(f"Ignoring override {row.id} with invalid domain {row.domain!r}")
        return False


def override_applies(row: UserPermission, instant: datetime, client_ip: Optional[str] = None) -> bool:
    """Whether the row's conditions hold at the given instant"""
    try:
        restriction = restriction_of(row)
    except ValidationError:
        # Unreadable window: keep denies in force, drop grants
        logger.warning(f"Malformed time restriction on override {row.id}")
        return not row.is_allowed

    if not is_allowed_at_time(restriction, instant):
        return False

    return ip_allowed(row.allowed_ips, client_ip)


def evaluate_overrides(rows: Iterable[UserPermission], action: str, scope: str,
                       instant: datetime, client_ip: Optional[str] = None) -> Optional[bool]:
    """
    Walk override rows (already ordered by priority) and return the decision of
    the first applicable one, or None when no row applies.
    """
    for row in rows:
        if not action_matches(row.action, action):
            continue
        if not domain_matches(row, scope):
            continue
        if not override_applies(row, instant, client_ip):
            logger.debug(f"Override {row.id} for {row.resource}.{row.action} not in effect")
            continue
        return bool(row.is_allowed)

    return None


class UserOverrideStore(BaseRepository[UserPermission]):
    """Storage access for per-user overrides"""

    def __init__(self, db: Session):
        super().__init__(db, UserPermission)

    def list_for(self, user_id: str, resource: str) -> List[UserPermission]:
        return (
            self.db.query(UserPermission)
            .filter(UserPermission.user_id == user_id, UserPermission.resource == resource)
            .order_by(UserPermission.priority.desc(), UserPermission.created_at, UserPermission.id)
            .all()
        )

    def list_for_user(self, user_id: str) -> List[UserPermission]:
        return (
            self.db.query(UserPermission)
            .filter(UserPermission.user_id == user_id)
            .order_by(UserPermission.resource, UserPermission.priority.desc())
            .all()
        )

    def upsert_override(
        self,
        user_id: str,
        resource: str,
        action: str,
        *,
        is_allowed: bool = True,
        priority: int = 0,
        time_restriction: Optional[TimeRestriction | dict] = None,
        allowed_ips: Optional[List[str]] = None,
        domain: str = GLOBAL_SCOPE,
    ) -> UserPermission:
        """
        Create or update the override for (user, resource, action, domain).

        Raises:
            ValueError: On an unknown action, scope token or time restriction
            RepositoryError: If the write fails
        """
        action = action.lower()
        if action != WILDCARD_ACTION and action not in CRUD_ACTIONS:
            raise ValueError(f"Unknown action '{action}'")

        domain = normalize_scope(domain)

        if isinstance(time_restriction, dict):
            try:
                time_restriction = TimeRestriction.model_validate(time_restriction)
            except ValidationError as e:
                raise ValueError(f"Invalid time restriction: {e.error_count()} error(s)")

        row = (
            self.db.query(UserPermission)
            .filter(
                UserPermission.user_id == user_id,
                UserPermission.resource == resource,
                UserPermission.action == action,
                UserPermission.domain == domain,
            )
            .first()
        )

        if row is None:
            row = UserPermission(user_id=user_id, resource=resource, action=action, domain=domain)
            self.db.add(row)

        row.is_allowed = is_allowed
        row.priority = priority
        row.time_restriction = time_restriction.model_dump(mode="json", exclude_none=True) if time_restriction else None
        row.allowed_ips = list(allowed_ips) if allowed_ips else None

        self.commit("save")
        self.db.refresh(row)

        logger.info(f"Saved override {resource}.{action} ({'allow' if is_allowed else 'deny'}) for user {user_id} in {domain}")
        return row

    def delete_override(self, user_id: str, resource: str, action: str, domain: str = GLOBAL_SCOPE) -> bool:
        domain = normalize_scope(domain)
        deleted = (
            self.db.query(UserPermission)
            .filter(
                UserPermission.user_id == user_id,
                UserPermission.resource == resource,
                UserPermission.action == action.lower(),
                UserPermission.domain == domain,
            )
            .delete()
        )
        self.commit("delete")

        if deleted:
            logger.info(f"Removed override {resource}.{action} for user {user_id} in {domain}")
        return deleted > 0
