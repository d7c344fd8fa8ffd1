"""
Fleet Telemetry Backend

Hot/cold telemetry store for EV charging hardware and AC-to-DC
charging efficiency analytics.
"""
__version__ = "1.0.0"
