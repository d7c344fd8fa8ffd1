"""
Analytics Module - AC-to-DC charging efficiency.

Per-vehicle 24 hour performance, fleet rollup and anomaly ranking,
computed on read from the telemetry history.
"""
