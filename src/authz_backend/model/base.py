import uuid
from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()
metadata = Base.metadata


def new_uuid() -> str:
    return str(uuid.uuid4())


class BaseModel:
    """Columns shared by every table: UUID string key and audit timestamps"""

    id = Column(String(36), primary_key=True, default=new_uuid)
    created_at = Column(DateTime(True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(True), nullable=False, server_default=func.now(), onupdate=func.now())
