"""
SQLAlchemy ORM models shared by the qrnr services.
"""

from __future__ import annotations

import json
import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .constants import DEFAULT_QR_LIMIT, CallStatus
from .security import decrypt_string, encrypt_string


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class JSONBType(TypeDecorator):
    """
    JSONB on PostgreSQL, TEXT with JSON serialization elsewhere.

    This allows tests to run with SQLite while production uses PostgreSQL JSONB.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return json.dumps(value, ensure_ascii=False)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        if isinstance(value, str):
            return json.loads(value)
        return value

    @property
    def python_type(self):
        return object


JSONB_TYPE = JSONBType()


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class Store(Base):
    __tablename__ = "qrnr_stores"

    store_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    qr_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_QR_LIMIT)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    mappings: Mapped[list[AdminStoreMapping]] = relationship(back_populates="store")


class Admin(Base):
    __tablename__ = "qrnr_admins"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="admin")
    email_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    mappings: Mapped[list[AdminStoreMapping]] = relationship(back_populates="admin")

    @hybrid_property
    def email(self) -> str | None:
        return decrypt_string(self.email_encrypted)

    @email.setter
    def email(self, value: str | None) -> None:
        self.email_encrypted = encrypt_string(value) if value else None

    @hybrid_property
    def phone(self) -> str | None:
        return decrypt_string(self.phone_encrypted)

    @phone.setter
    def phone(self, value: str | None) -> None:
        self.phone_encrypted = encrypt_string(value) if value else None


class AdminStoreMapping(Base):
    __tablename__ = "qrnr_admin_store_mappings"
    __table_args__ = (UniqueConstraint("admin_id", "store_id", name="uq_admin_store"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    admin_id: Mapped[str] = mapped_column(ForeignKey("qrnr_admins.id"), nullable=False, index=True)
    store_id: Mapped[str] = mapped_column(
        ForeignKey("qrnr_stores.store_id"), nullable=False, index=True
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    admin: Mapped[Admin] = relationship(back_populates="mappings")
    store: Mapped[Store] = relationship(back_populates="mappings")


class Order(Base):
    __tablename__ = "qrnr_orders"
    __table_args__ = (
        UniqueConstraint("store_id", "order_no", name="uq_order_store_order_no"),
        CheckConstraint("amount >= 0", name="ck_order_amount_non_negative"),
        Index("ix_order_store_created_at", "store_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    store_id: Mapped[str] = mapped_column(ForeignKey("qrnr_stores.store_id"), nullable=False)
    order_no: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    table_no: Mapped[str | None] = mapped_column(String(32), nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    meta: Mapped[dict[str, Any]] = mapped_column(JSONB_TYPE, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    history: Mapped[list[OrderStatusHistory]] = relationship(
        back_populates="order",
        order_by="OrderStatusHistory.id",
        lazy="selectin",
    )


class OrderStatusHistory(Base):
    """Append-only status log; rows are inserted, never updated or deleted."""

    __tablename__ = "qrnr_order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("qrnr_orders.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    order: Mapped[Order] = relationship(back_populates="history")


class CallLog(Base):
    __tablename__ = "qrnr_call_logs"
    __table_args__ = (Index("ix_call_store_created_at", "store_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    store_id: Mapped[str] = mapped_column(ForeignKey("qrnr_stores.store_id"), nullable=False)
    table_no: Mapped[str | None] = mapped_column(String(32), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=CallStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class StoreSettings(Base):
    __tablename__ = "qrnr_store_settings"

    store_id: Mapped[str] = mapped_column(ForeignKey("qrnr_stores.store_id"), primary_key=True)
    owner_bank: Mapped[dict[str, Any] | None] = mapped_column(JSONB_TYPE, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class PaymentCode(Base):
    __tablename__ = "qrnr_payment_codes"
    __table_args__ = (UniqueConstraint("store_id", "date", name="uq_payment_code_store_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    store_id: Mapped[str] = mapped_column(ForeignKey("qrnr_stores.store_id"), nullable=False)
    code_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    code: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
