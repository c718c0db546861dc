"""Subscription model: externally owned billing state, read by this service."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from app.db.base import Base


class Subscription(Base):
    """One row per user, written by the billing reconciler, never by the pipeline."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), unique=True, nullable=False, index=True)

    tier = Column(String(20), nullable=True)  # free, premium, pro
    status = Column(String(30), nullable=False, default="active")  # active, trial, cancelled, grace_period, expired, paused
    external_billing_ref = Column(String(255), nullable=True)  # Stripe subscription / RevenueCat id
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
