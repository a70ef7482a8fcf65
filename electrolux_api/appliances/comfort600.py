"""Electrolux COMFORT600 portable air conditioner.

Model COMFORT600, variant AZULTM10, device type PORTABLE_AIR_CONDITIONER.
"""

from typing import Any, Dict, List, Optional

from ..models import NormalizedState
from .base import BaseAppliance
from .normalizers import denormalize_climate_mode, denormalize_fan_speed, normalize_climate_appliance

MODEL_NAME = "COMFORT600"

DEFAULT_MIN_TEMP = 16
DEFAULT_MAX_TEMP = 32


class Comfort600Appliance(BaseAppliance):
    """Portable AC whose power is driven by executeCommand ON/OFF."""

    def model_name(self) -> str:
        return MODEL_NAME

    def supported_modes(self) -> List[str]:
        return ["auto", "cool", "dry", "fan_only", "heat", "off"]

    def supported_fan_modes(self) -> List[str]:
        return ["auto", "high", "medium", "low"]

    def supported_swing_modes(self) -> List[str]:
        return ["on", "off"]

    def temperature_range(self) -> Dict[str, float]:
        target = self.capabilities.get("targetTemperatureC") or {}
        return {
            "min": target.get("min", DEFAULT_MIN_TEMP),
            "max": target.get("max", DEFAULT_MAX_TEMP),
            "initial": target.get("default", DEFAULT_MIN_TEMP),
        }

    def normalize_state(self, raw_state: Dict[str, Any]) -> Optional[NormalizedState]:
        return normalize_climate_appliance(raw_state)

    def transform_command_to_api(self, command: Dict[str, Any]) -> Dict[str, Any]:
        """Build the API payload for a normalized command.

        A mode of "off" turns the unit off; any other command turns it on.
        """
        command = dict(command)
        mode = command.pop("mode", None)
        fan_speed = command.pop("fanSpeedSetting", None)

        execute_command = "OFF" if mode and str(mode).lower() == "off" else "ON"

        payload = dict(command)
        payload["executeCommand"] = execute_command

        if execute_command != "OFF" and mode:
            payload["mode"] = denormalize_climate_mode(mode)

        if fan_speed:
            payload["fanSpeedSetting"] = denormalize_fan_speed(fan_speed)

        return payload

    def derive_immediate_state_from_command(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        # executeCommand drives applianceState on this model
        if "executeCommand" in payload:
            return {"applianceState": "off" if payload["executeCommand"] == "OFF" else "on"}
        return None
