from sqlalchemy import (
    Boolean, Column, ForeignKey, Integer, JSON, String, UniqueConstraint, text, true
)
from sqlalchemy.orm import relationship

from .base import Base, BaseModel


class User(BaseModel, Base):
    __tablename__ = 'users'

    email = Column(String(320), unique=True)
    name = Column(String(255))
    # Global role; company roles come from memberships
    role_id = Column(ForeignKey('roles.id', ondelete='SET NULL'), index=True)
    is_active = Column(Boolean, nullable=False, server_default=true(), default=True)

    # Relationships
    role = relationship('Role', foreign_keys=[role_id], lazy='select')
    user_permissions = relationship('UserPermission', back_populates='user', cascade='all, delete-orphan')
    company_members = relationship('CompanyMember', back_populates='user', uselist=True, lazy='select')


class UserPermission(BaseModel, Base):
    __tablename__ = 'user_permissions'
    __table_args__ = (
        UniqueConstraint('user_id', 'resource', 'action', 'domain', name='idx_user_resource_action_domain'),
    )

    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    resource = Column(String(50), nullable=False)
    action = Column(String(20), nullable=False)
    domain = Column(String(64), nullable=False, server_default=text("'*'"), default="*")
    is_allowed = Column(Boolean, nullable=False, server_default=true(), default=True)
    time_restriction = Column(JSON)
    allowed_ips = Column(JSON)
    priority = Column(Integer, nullable=False, server_default=text("0"), default=0)

    user = relationship('User', back_populates='user_permissions')
