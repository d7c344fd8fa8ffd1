"""
Fleet Telemetry Modules

- telemetry: Ingestion engine, current-state (hot) and history (cold) stores
- registry: Vehicle to charging-meter association registry
- analytics: AC-to-DC efficiency reports, fleet rollup, anomaly detection
"""
