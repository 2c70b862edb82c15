"""SQLAlchemy model for vendor alerts."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from solarsync_engine.common.models import Base, TimestampMixin


class AlertModel(Base, TimestampMixin):
    __tablename__ = "alerts"
    __table_args__ = (
        UniqueConstraint("vendor_id", "vendor_alert_id", name="uq_alerts_vendor_alert"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("vendors.id"), nullable=False, index=True
    )
    vendor_alert_id: Mapped[str] = mapped_column(String(100), nullable=False)
    plant_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("plants.id"), nullable=True, index=True
    )
    vendor_plant_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="MEDIUM")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE", index=True)

    alert_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    grid_down_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    device_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    device_sn: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vendor_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
