"""ORM models for users, the product catalog and versioned purchase requests.

Relational invariants:
    - User.email is unique (``user_unique_email``).
    - Role, UserStatus and RequestStatus rows come from closed static sets
      seeded by ``procurement.db.engine.seed_reference_data``.
    - For one ref_no, at most one Request row has is_current=1.
    - No ORM or database cascade is configured. Deletes are issued explicitly
      by the domain layer in dependency order (details, requests, owner).
"""
from __future__ import annotations
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement.db.base import Base, GUID


class Role(Base):
    __tablename__ = "role"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)


class UserStatus(Base):
    __tablename__ = "user_status"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)


class RequestStatus(Base):
    __tablename__ = "request_status"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)


class User(Base):
    __tablename__ = "user"
    __table_args__ = (Index("user_unique_email", "email", unique=True),)

    id: Mapped[UUID] = mapped_column(GUID(), primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(255))
    last_name: Mapped[str | None] = mapped_column(String(255))
    role_id: Mapped[str] = mapped_column(ForeignKey("role.id"), nullable=False)
    user_status_id: Mapped[str] = mapped_column(ForeignKey("user_status.id"), nullable=False)

    role: Mapped[Role] = relationship()
    user_status: Mapped[UserStatus] = relationship()
    requests: Mapped[list["Request"]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role_id} status={self.user_status_id}>"


class Product(Base):
    __tablename__ = "product"

    id: Mapped[UUID] = mapped_column(GUID(), primary_key=True, default=uuid4)
    display_name: Mapped[str | None] = mapped_column(String(1000))
    price: Mapped[Decimal] = mapped_column(Numeric(30, 5), nullable=False)
    price_currency: Mapped[str | None] = mapped_column(String(255))


class Request(Base):
    """One revision of a purchase request. Revisions share ``ref_no``."""

    __tablename__ = "request"
    __table_args__ = (Index("ix_request_ref_no_is_current", "ref_no", "is_current"),)

    id: Mapped[UUID] = mapped_column(GUID(), primary_key=True, default=uuid4)
    ref_no: Mapped[UUID] = mapped_column(GUID(), nullable=False)
    is_current: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    user_id: Mapped[UUID] = mapped_column(GUID(), ForeignKey("user.id"), nullable=False)
    request_status_id: Mapped[str] = mapped_column(ForeignKey("request_status.id"), nullable=False)

    user: Mapped[User] = relationship(back_populates="requests")
    request_status: Mapped[RequestStatus] = relationship()
    request_details: Mapped[list["RequestDetail"]] = relationship(back_populates="request")

    def __repr__(self) -> str:
        return f"<Request ref_no={self.ref_no} is_current={self.is_current} status={self.request_status_id}>"


class RequestDetail(Base):
    __tablename__ = "request_detail"

    id: Mapped[UUID] = mapped_column(GUID(), primary_key=True, default=uuid4)
    qty: Mapped[int] = mapped_column(BigInteger, nullable=False)
    request_id: Mapped[UUID] = mapped_column(GUID(), ForeignKey("request.id"), nullable=False)
    product_id: Mapped[UUID] = mapped_column(GUID(), ForeignKey("product.id"), nullable=False)

    request: Mapped[Request] = relationship(back_populates="request_details")
    product: Mapped[Product] = relationship()
