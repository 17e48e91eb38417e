from sqlalchemy import (
    Boolean, Column, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, text, true
)
from sqlalchemy.orm import relationship

from .base import Base, BaseModel


class Role(BaseModel, Base):
    __tablename__ = 'roles'

    name = Column(String(100), unique=True)
    description = Column(String(255))
    # Absent company_id means the role is global
    company_id = Column(ForeignKey('companies.id', ondelete='CASCADE'), index=True)
    # Legacy grouped permission document, kept verbatim
    permissions = Column(Text)
    is_active = Column(Boolean, nullable=False, server_default=true(), default=True)
    created_by_id = Column(String(36), index=True)

    # Relationships
    role_permissions = relationship('RolePermission', back_populates='role', cascade='all, delete-orphan')
    company = relationship('Company', back_populates='roles')


class RolePermission(BaseModel, Base):
    __tablename__ = 'role_permissions'
    __table_args__ = (
        UniqueConstraint('role_id', 'resource', 'action', name='idx_role_resource_action'),
    )

    role_id = Column(ForeignKey('roles.id', ondelete='CASCADE'), nullable=False, index=True)
    resource = Column(String(100), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    effect = Column(String(10), nullable=False, server_default=text("'allow'"), default="allow")
    conditions = Column(JSON)
    priority = Column(Integer, nullable=False, server_default=text("0"), default=0)

    role = relationship('Role', back_populates='role_permissions')


class Permission(BaseModel, Base):
    __tablename__ = 'permissions'

    name = Column(String(100), unique=True, nullable=False)
    display_name = Column(String(150))
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, server_default=true(), default=True)
    created_by_id = Column(String(36), index=True)
