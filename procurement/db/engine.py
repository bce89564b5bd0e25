"""Engine, session factory and reference-data seeding.

All multi-row writes in the domain layer run inside ``session_scope()`` (or
``Session.begin()`` on a factory-made session) so that a state transition is
applied completely or not at all.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Generator
from uuid import UUID

from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from procurement.core.constants import RequestStatusId, RoleId, UserStatusId
from procurement.db.base import Base
from procurement.db.models import Product, RequestStatus, Role, UserStatus

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

# Catalog shipped with the initial schema
DEMO_PRODUCTS = (
    (UUID("e6f6ddb0-02dd-4106-8716-e6ffa329c664"), "Product1", Decimal("5.99"), "Euro"),
    (UUID("ce901d35-85d4-45a2-8e14-49bc360f70eb"), "Product2", Decimal("15"), "Euro"),
    (UUID("ad45055b-f1b3-46aa-a4c2-8ba5a4d27236"), "Product3", Decimal("100"), "Euro"),
)


def init_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Initialize the module-level engine and session factory.

    In-memory SQLite URLs get a ``StaticPool`` so every session sees the same
    database (used by tests and the demo mode).
    """
    global _engine, _SessionFactory

    kwargs: dict = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    _engine = create_engine(database_url, **kwargs)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(f"Database engine initialized (dialect={_engine.dialect.name}, echo={echo})")
    return _engine


def get_engine() -> Engine:
    """Return the current engine.

    Raises:
        RuntimeError: If init_engine() was not called.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Return the session factory.

    Raises:
        RuntimeError: If init_engine() was not called.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine() first.")
    return _SessionFactory


def dispose_engine() -> None:
    """Drop pooled connections (used after gunicorn forks a worker)."""
    if _engine is not None:
        _engine.dispose()


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; rolls back and re-raises on any exception.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("Transaction rolled back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create every table known to the declarative base."""
    Base.metadata.create_all(bind=engine or get_engine())


def seed_reference_data(session: Session, include_products: bool = True) -> None:
    """Insert the closed reference sets (and the demo catalog) if missing."""
    reference_sets = (
        (Role, RoleId.ALL),
        (UserStatus, UserStatusId.ALL),
        (RequestStatus, RequestStatusId.ALL),
    )
    for model, ids in reference_sets:
        existing = set(session.scalars(select(model.id)))
        for ref_id in ids:
            if ref_id not in existing:
                session.add(model(id=ref_id))

    if include_products:
        existing_products = set(session.scalars(select(Product.id)))
        for product_id, name, price, currency in DEMO_PRODUCTS:
            if product_id not in existing_products:
                session.add(Product(id=product_id, display_name=name, price=price, price_currency=currency))

    session.flush()
