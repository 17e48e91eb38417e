"""
Test helpers: in-memory caches and builders for authorization data.
"""

from datetime import datetime
from typing import Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from authz_backend.model import Company, CompanyMember, Role, RolePermission, User, UserPermission

# Wednesday
WEEKDAY_NOON = datetime(2025, 1, 15, 12, 0)
# Saturday
WEEKEND_NOON = datetime(2025, 1, 18, 12, 0)


class MockCache:
    """In-memory stand-in for the Redis cache"""

    def __init__(self):
        self._data = {}
        self._call_log = []

    async def get(self, key):
        self._call_log.append(('get', key))
        return self._data.get(key)

    async def set(self, key, value, ttl=None):
        self._call_log.append(('set', key, ttl))
        self._data[key] = value

    async def delete(self, *keys):
        self._call_log.append(('delete', keys))
        for key in keys:
            self._data.pop(key, None)

    def clear_log(self):
        self._call_log = []

    @property
    def call_log(self):
        return self._call_log

    @property
    def data(self):
        return self._data


class FailingCache:
    """Cache whose every operation raises, as with Redis unreachable"""

    async def get(self, key):
        raise ConnectionError("redis unreachable")

    async def set(self, key, value, ttl=None):
        raise ConnectionError("redis unreachable")

    async def delete(self, *keys):
        raise ConnectionError("redis unreachable")


def make_role(db: Session, name: str, grants: Iterable[Tuple[str, str]] = (),
              document: Optional[str] = None, company_id: Optional[str] = None,
              is_active: bool = True) -> Role:
    role = Role(name=name, company_id=company_id, permissions=document, is_active=is_active)
    db.add(role)
    db.flush()

    for resource, action in grants:
        db.add(RolePermission(role_id=role.id, resource=resource, action=action, effect="allow"))

    db.commit()
    db.refresh(role)
    return role


def make_user(db: Session, email: str, role: Optional[Role] = None) -> User:
    user = User(email=email, name=email.split("@")[0], role_id=role.id if role else None)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_company(db: Session, name: str) -> Company:
    company = Company(name=name)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def make_membership(db: Session, user: User, company: Company, role: Role,
                    is_active: bool = True) -> CompanyMember:
    member = CompanyMember(user_id=user.id, company_id=company.id, role_id=role.id,
                           is_active=is_active, status="active" if is_active else "inactive")
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def make_override(db: Session, user: User, resource: str, action: str, is_allowed: bool,
                  priority: int = 0, domain: str = "*", time_restriction: Optional[dict] = None,
                  allowed_ips: Optional[list] = None) -> UserPermission:
    row = UserPermission(user_id=user.id, resource=resource, action=action, is_allowed=is_allowed,
                         priority=priority, domain=domain, time_restriction=time_restriction,
                         allowed_ips=allowed_ips)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
