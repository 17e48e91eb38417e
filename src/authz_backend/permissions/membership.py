"""
Company memberships.

A membership ties a user to a company and to the company-scoped role the
user holds there. Only active memberships count for authorization, and at
most one active membership may exist per (user, company).
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from authz_backend.model.company import CompanyMember
from authz_backend.model.role import Role
from authz_backend.permissions.cache import PermissionCache, company_members_key
from authz_backend.permissions.domain import canonical_company_id
from authz_backend.repositories.base import BaseRepository, DuplicateError, NotFoundError

logger = logging.getLogger(__name__)


class MemberEntry(BaseModel):
    user_id: str = Field(description="Member user id")
    role_id: str = Field(description="Company role id")
    role_name: Optional[str] = Field(None, description="Company role name")
    is_owner: bool = Field(False, description="Whether the member owns the company")


class CompanyMemberList(BaseModel):
    company_id: str
    members: List[MemberEntry] = Field(default_factory=list)


class MembershipStore(BaseRepository[CompanyMember]):

    def __init__(self, db: Session, cache: PermissionCache):
        super().__init__(db, CompanyMember)
        self.cache = cache

    def active_membership(self, user_id: str, company_id: str) -> Optional[CompanyMember]:
        company_id = canonical_company_id(company_id)
        return (
            self.db.query(CompanyMember)
            .filter(
                CompanyMember.user_id == user_id,
                CompanyMember.company_id == company_id,
                CompanyMember.is_active == True,
            )
            .order_by(CompanyMember.created_at.desc())
            .first()
        )

    def active_memberships_for_user(self, user_id: str) -> List[CompanyMember]:
        return (
            self.db.query(CompanyMember)
            .filter(CompanyMember.user_id == user_id, CompanyMember.is_active == True)
            .all()
        )

    def _company_role(self, role_id: str, company_id: str) -> Role:
        role = self.db.query(Role).filter(Role.id == role_id).first()
        if role is None:
            raise NotFoundError("Role", role_id)
        if role.company_id is not None and role.company_id != company_id:
            raise ValueError(f"Role {role_id} belongs to another company")
        return role

    async def add_member(self, user_id: str, company_id: str, role_id: str, is_owner: bool = False) -> CompanyMember:
        """
        Add an active membership.

        Raises:
            DuplicateError: If the user already is an active member
            NotFoundError: If the role does not exist
            InvalidScopeError: If company_id is not a valid UUID
            ValueError: If the role is scoped to a different company
        """
        company_id = canonical_company_id(company_id)

        if self.active_membership(user_id, company_id) is not None:
            raise DuplicateError("CompanyMember", {"user_id": user_id, "company_id": company_id})

        self._company_role(role_id, company_id)

        member = self.create(CompanyMember(
            user_id=user_id,
            company_id=company_id,
            role_id=role_id,
            is_owner=is_owner,
            is_active=True,
            status="active",
            joined_at=datetime.now(timezone.utc),
        ))

        logger.info(f"User {user_id} joined company {company_id} with role {role_id}")
        self.cache.schedule_invalidation(company_members_key(company_id))
        return member

    async def change_member_role(self, user_id: str, company_id: str, role_id: str) -> CompanyMember:
        company_id = canonical_company_id(company_id)
        member = self.active_membership(user_id, company_id)
        if member is None:
            raise NotFoundError("CompanyMember", f"{user_id}@{company_id}")

        self._company_role(role_id, company_id)

        member.role_id = role_id
        self.commit("update")

        logger.info(f"User {user_id} now holds role {role_id} in company {company_id}")
        self.cache.schedule_invalidation(company_members_key(company_id))
        return member

    async def deactivate_member(self, user_id: str, company_id: str) -> bool:
        company_id = canonical_company_id(company_id)
        member = self.active_membership(user_id, company_id)
        if member is None:
            return False

        member.is_active = False
        member.status = "inactive"
        self.commit("update")

        logger.info(f"Deactivated membership of user {user_id} in company {company_id}")
        self.cache.schedule_invalidation(company_members_key(company_id))
        return True

    async def list_members(self, company_id: str) -> List[MemberEntry]:
        """Active members of a company, read through the member cache"""
        company_id = canonical_company_id(company_id)

        cached = await self.cache.get_company_members(company_id)
        if cached is not None:
            try:
                return CompanyMemberList.model_validate_json(cached).members
            except ValidationError:
                logger.warning(f"Discarding unreadable member list cache for company {company_id}")

        rows = (
            self.db.query(CompanyMember.user_id, CompanyMember.role_id, Role.name, CompanyMember.is_owner)
            .join(Role, Role.id == CompanyMember.role_id)
            .filter(CompanyMember.company_id == company_id, CompanyMember.is_active == True)
            .order_by(CompanyMember.created_at, CompanyMember.user_id)
            .all()
        )

        members = [
            MemberEntry(user_id=user_id, role_id=role_id, role_name=role_name, is_owner=bool(is_owner))
            for user_id, role_id, role_name, is_owner in rows
        ]

        await self.cache.set_company_members(
            company_id, CompanyMemberList(company_id=company_id, members=members).model_dump_json()
        )
        return members
