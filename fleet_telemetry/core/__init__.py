from fleet_telemetry.core.config import settings
from fleet_telemetry.core.database import get_db

__all__ = ["settings", "get_db"]
