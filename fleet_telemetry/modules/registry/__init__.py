"""
Registry Module - Vehicle to charging-meter associations.

Models: VehicleMeterMapping
"""
