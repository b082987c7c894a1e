from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base


class InventoryTransactionModel(Base):
    __tablename__ = 'inventory_transaction'
    __table_args__ = (
        Index('ix_inventory_transaction_ticket_type_timestamp', 'ticket_type_id', 'timestamp'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # UUID7, time ordered
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    ticket_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    related_hold_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    actor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    available_before: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    available_after: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    transaction_metadata: Mapped[dict] = mapped_column(
        'metadata', JSON, nullable=False, default=dict
    )
