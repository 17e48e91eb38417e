from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, String, text, true, false
)
from sqlalchemy.orm import relationship

from .base import Base, BaseModel


class Company(BaseModel, Base):
    __tablename__ = 'companies'

    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=true(), default=True)

    # Relationships
    members = relationship('CompanyMember', back_populates='company', uselist=True, lazy='select')
    roles = relationship('Role', back_populates='company', uselist=True, lazy='select')


class CompanyMember(BaseModel, Base):
    __tablename__ = 'company_members'
    __table_args__ = (
        Index('idx_user_company', 'user_id', 'company_id'),
    )

    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    company_id = Column(ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    role_id = Column(ForeignKey('roles.id', ondelete='RESTRICT'), nullable=False, index=True)
    is_owner = Column(Boolean, nullable=False, server_default=false(), default=False)
    is_active = Column(Boolean, nullable=False, server_default=true(), default=True)
    status = Column(String(20), nullable=False, server_default=text("'active'"), default="active")
    joined_at = Column(DateTime(True))

    user = relationship('User', back_populates='company_members')
    company = relationship('Company', back_populates='members')
    role = relationship('Role')
