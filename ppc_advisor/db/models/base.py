"""
SQLAlchemy declarative base: every model lives in the ppc_advisor schema
"""

from sqlalchemy.orm import DeclarativeBase

from ppc_advisor.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Declarative base, schema-isolated"""

    __abstract__ = True

    __table_args__ = {"schema": settings.DB_SCHEMA}
