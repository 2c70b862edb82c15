"""SQLAlchemy model for monitored plants."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from solarsync_engine.common.models import Base, TimestampMixin


class PlantModel(Base, TimestampMixin):
    __tablename__ = "plants"
    __table_args__ = (
        UniqueConstraint("vendor_id", "vendor_plant_id", name="uq_plants_vendor_plant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("vendors.id"), nullable=False, index=True
    )
    vendor_plant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    org_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("organizations.id"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    capacity_kw: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    current_power_kw: Mapped[float | None] = mapped_column(Float, nullable=True)
    daily_energy_mwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    monthly_energy_mwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    yearly_energy_mwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_energy_mwh: Mapped[float | None] = mapped_column(Float, nullable=True)
    performance_ratio: Mapped[float | None] = mapped_column(Float, nullable=True)

    network_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_update_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    vendor_created_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    start_operating_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    vendor_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
