"""
Registry Module - Database Models
"""
from datetime import datetime

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fleet_telemetry.core.models import Base, UTCDateTime, utc_now
from fleet_telemetry.modules.telemetry.models import DEVICE_ID_LENGTH


class VehicleMeterMapping(Base):
    """
    Static association of a vehicle with the meter that charges it.

    One meter may serve several vehicles; a vehicle has at most one meter.
    """
    __tablename__ = "vehicle_meter_mapping"

    __table_args__ = (
        Index("ix_vehicle_meter_mapping_meter", "meter_id"),
    )

    vehicle_id: Mapped[str] = mapped_column(String(DEVICE_ID_LENGTH), primary_key=True)
    meter_id: Mapped[str] = mapped_column(String(DEVICE_ID_LENGTH), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)
