"""
Telemetry Module - Database Models

Two stores per device class:
- *CurrentState: one row per device, overwritten by every newer reading (hot)
- *TelemetryHistory: append-only ledger of every reading received (cold)

Both are written in the same transaction by the ingestion engine.
"""
from datetime import datetime

from sqlalchemy import BigInteger, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from fleet_telemetry.core.models import Base, UTCDateTime, utc_now

# SQLite only autoincrements INTEGER PRIMARY KEY
HistoryId = BigInteger().with_variant(Integer, "sqlite")

DEVICE_ID_LENGTH = 50


class MeterCurrentState(Base):
    """Latest reading of a charging meter."""
    __tablename__ = "meter_current_state"

    __table_args__ = (
        Index("ix_meter_current_state_last_update", "last_update"),
    )

    meter_id: Mapped[str] = mapped_column(String(DEVICE_ID_LENGTH), primary_key=True)
    ac_energy_consumed_kwh: Mapped[float] = mapped_column(
        Numeric(10, 3, asdecimal=False),
        nullable=False,
    )
    voltage: Mapped[float] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=False)

    # Reading timestamp of the row's source reading
    last_update: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)


class VehicleCurrentState(Base):
    """Latest reading of a vehicle battery."""
    __tablename__ = "vehicle_current_state"

    __table_args__ = (
        Index("ix_vehicle_current_state_last_update", "last_update"),
    )

    vehicle_id: Mapped[str] = mapped_column(String(DEVICE_ID_LENGTH), primary_key=True)
    state_of_charge: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    dc_energy_delivered_kwh: Mapped[float] = mapped_column(
        Numeric(10, 3, asdecimal=False),
        nullable=False,
    )
    battery_temperature_c: Mapped[float] = mapped_column(
        Numeric(5, 2, asdecimal=False),
        nullable=False,
    )

    last_update: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)


class MeterTelemetryHistory(Base):
    """
    Meter reading ledger.

    `timestamp` is the caller-supplied reading time and may arrive out of
    order; `recorded_at` is the receipt time.
    """
    __tablename__ = "meter_telemetry_history"

    __table_args__ = (
        Index("ix_meter_history_meter_time", "meter_id", "timestamp"),
        Index("ix_meter_history_time", "timestamp"),
    )

    id: Mapped[int] = mapped_column(HistoryId, primary_key=True, autoincrement=True)
    meter_id: Mapped[str] = mapped_column(String(DEVICE_ID_LENGTH), nullable=False)
    ac_energy_consumed_kwh: Mapped[float] = mapped_column(
        Numeric(10, 3, asdecimal=False),
        nullable=False,
    )
    voltage: Mapped[float] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)


class VehicleTelemetryHistory(Base):
    """Vehicle reading ledger."""
    __tablename__ = "vehicle_telemetry_history"

    __table_args__ = (
        Index("ix_vehicle_history_vehicle_time", "vehicle_id", "timestamp"),
        Index("ix_vehicle_history_time", "timestamp"),
    )

    id: Mapped[int] = mapped_column(HistoryId, primary_key=True, autoincrement=True)
    vehicle_id: Mapped[str] = mapped_column(String(DEVICE_ID_LENGTH), nullable=False)
    state_of_charge: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    dc_energy_delivered_kwh: Mapped[float] = mapped_column(
        Numeric(10, 3, asdecimal=False),
        nullable=False,
    )
    battery_temperature_c: Mapped[float] = mapped_column(
        Numeric(5, 2, asdecimal=False),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)


class DeviceType:
    """Device classes accepted by the ingestion engine."""
    METER = "meter"
    VEHICLE = "vehicle"
