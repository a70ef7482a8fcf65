"""MQTT bridge for Electrolux appliances."""

__version__ = "1.0.0"
