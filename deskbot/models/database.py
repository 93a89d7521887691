"""
Database Models

SQLAlchemy ORM models for the multi-tenant message queue and booking engine.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid,
    Enum as SQLEnum, text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class CreatedAtMixin:
    """Mixin that adds a created_at timestamp column."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class QueueStatus(str, Enum):
    """Queue item status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Business(Base, CreatedAtMixin):
    """
    Business model (Tenant).

    Every queue item, conversation, budget, and appointment belongs to
    exactly one business.
    """

    __tablename__ = "businesses"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    telegram_bot_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    google_calendar_token: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        doc="Stored OAuth credential; must contain access_token"
    )
    calendar_id: Mapped[str] = mapped_column(String(255), default="primary")
    timezone: Mapped[str] = mapped_column(String(50), default="Asia/Colombo")
    business_hours: Mapped[dict] = mapped_column(JSON, default=dict)

    # Relationships
    budget: Mapped[Optional["Budget"]] = relationship(
        "Budget",
        back_populates="business",
        uselist=False
    )

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name='{self.name}')>"


class QueueItem(Base, CreatedAtMixin):
    """
    Inbound message waiting to be processed.

    Written by the webhook ingestion service with status=pending. Only the
    dispatcher moves it to processing and then completed or failed.
    """

    __tablename__ = "request_queue"
    __table_args__ = (
        Index("idx_queue_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    raw_payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[QueueStatus] = mapped_column(
        SQLEnum(QueueStatus),
        default=QueueStatus.PENDING,
        nullable=False
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<QueueItem(id={self.id}, status={self.status.value})>"


class Conversation(Base, CreatedAtMixin):
    """
    Multi-turn conversation with one customer.

    Active while expires_at is in the future. Expired rows stay in the
    table and are simply ignored by the active lookup.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        Index("idx_conversation_customer", "business_id", "customer_chat_id", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    customer_chat_id: Mapped[str] = mapped_column(String(100), nullable=False)
    intent: Mapped[str] = mapped_column(String(50), nullable=False)
    state: Mapped[dict] = mapped_column(JSON, default=dict)
    history: Mapped[list] = mapped_column(JSON, default=list)
    last_message_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Conversation(id={self.id}, customer='{self.customer_chat_id}', "
            f"intent='{self.intent}', expires_at={self.expires_at})>"
        )


class Budget(Base):
    """
    Per-tenant spending ledger.

    pending_usage_usd holds reservations that are neither committed nor
    released yet. It never drops below zero.
    """

    __tablename__ = "budgets"

    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        primary_key=True
    )
    monthly_limit_usd: Mapped[float] = mapped_column(Float, nullable=False, default=10.0)
    current_usage_usd: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pending_usage_usd: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Relationships
    business: Mapped["Business"] = relationship("Business", back_populates="budget")

    def __repr__(self) -> str:
        return (
            f"<Budget(business_id={self.business_id}, limit={self.monthly_limit_usd}, "
            f"used={self.current_usage_usd}, pending={self.pending_usage_usd})>"
        )


class CostLog(Base, CreatedAtMixin):
    """One committed model charge."""

    __tablename__ = "cost_logs"
    __table_args__ = (
        Index("idx_cost_business_time", "business_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    amount_usd: Mapped[float] = mapped_column(Float, nullable=False)
    model_used: Mapped[str] = mapped_column(String(100), nullable=False)
    tokens_in: Mapped[int] = mapped_column(Integer, default=0)
    tokens_out: Mapped[int] = mapped_column(Integer, default=0)


class Appointment(Base, CreatedAtMixin):
    """
    Booked appointment.

    Written only after the calendar event exists and while the slot lock
    is held.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointment_business_date", "business_id", "appointment_date"),
        Index("idx_appointment_customer", "business_id", "customer_chat_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_chat_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    service_type: Mapped[str] = mapped_column(String(255), nullable=False)
    appointment_date: Mapped[str] = mapped_column(String(10), nullable=False)
    appointment_time: Mapped[str] = mapped_column(String(5), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60)
    google_event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus),
        default=AppointmentStatus.CONFIRMED
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, date={self.appointment_date}, "
            f"time={self.appointment_time}, status={self.status.value})>"
        )


class FaqDocument(Base, CreatedAtMixin):
    """Question/answer pair a business publishes for its customers."""

    __tablename__ = "faq_documents"
    __table_args__ = (
        Index("idx_faq_business", "business_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
