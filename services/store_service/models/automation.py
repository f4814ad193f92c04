"""Automation bookkeeping: operation logs and the order outbox."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, JSONType
from services.store_service.models.enums import (
    AutomationStatus,
    AutomationType,
    OutboxEventType,
    OutboxStatus,
    enum_values,
)
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class AutomationLog(Base):
    """Audit row per long-running operation.

    order_id is only set for order_fulfillment rows; together with
    automation_type it is unique, so at most one fulfillment log exists per
    order. Sync and import rows leave it NULL and never collide.
    """

    __tablename__ = "store_automation_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    automation_type: Mapped[AutomationType] = mapped_column(
        SAEnum(
            AutomationType,
            values_callable=enum_values,
            name="store_automation_type_enum",
        ),
        nullable=False,
    )
    status: Mapped[AutomationStatus] = mapped_column(
        SAEnum(
            AutomationStatus,
            values_callable=enum_values,
            name="store_automation_status_enum",
        ),
        default=AutomationStatus.RUNNING,
        nullable=False,
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("store_orders.id", ondelete="SET NULL"),
        nullable=True,
    )

    details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("order_id", "automation_type", name="unique_order_automation"),
        Index("ix_store_automation_logs_type_started", "automation_type", "started_at"),
    )

    def __repr__(self):
        return f"<AutomationLog {self.automation_type} {self.status}>"


class OutboxEvent(Base):
    """Event written in the same transaction as the state change it announces."""

    __tablename__ = "store_outbox_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type: Mapped[OutboxEventType] = mapped_column(
        SAEnum(
            OutboxEventType,
            values_callable=enum_values,
            name="store_outbox_event_type_enum",
        ),
        nullable=False,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[OutboxStatus] = mapped_column(
        SAEnum(
            OutboxStatus,
            values_callable=enum_values,
            name="store_outbox_status_enum",
        ),
        default=OutboxStatus.PENDING,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("event_type", "order_id", name="unique_outbox_event_order"),
        Index("ix_store_outbox_events_status", "status"),
    )

    def __repr__(self):
        return f"<OutboxEvent {self.event_type} {self.status}>"
