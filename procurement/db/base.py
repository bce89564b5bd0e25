"""Declarative base and portable column types for the ORM models."""
from __future__ import annotations
from uuid import UUID as PyUUID

from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class GUID(TypeDecorator):
    """UUID stored as String(36) so SQLite and SQL Server behave the same."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, PyUUID):
            value = PyUUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return PyUUID(value)


class Base(DeclarativeBase):
    """Declarative base for all models."""
