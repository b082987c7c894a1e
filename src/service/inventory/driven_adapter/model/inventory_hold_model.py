from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base


class InventoryHoldModel(Base):
    __tablename__ = 'inventory_hold'
    __table_args__ = (
        # Sweeper scan: active holds ordered by expiry
        Index('ix_inventory_hold_status_expires_at', 'status', 'expires_at'),
        # Event-wide admin release and listing
        Index('ix_inventory_hold_event_id_status', 'event_id', 'status'),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # UUID7
    ticket_type_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    event_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    session_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='active')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    hold_metadata: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
