"""Helpers that turn Electrolux API state into the normalized format.

The normalizers accept both the nested API shape (``properties.reported``)
and a flat dict, so an already-normalized state can be normalized again
without losing fields.
"""

from typing import Any, Dict, Optional

from ..models import NormalizedState


def to_lowercase(value: Optional[str]) -> Optional[str]:
    """Lowercase a string, passing None through."""
    if value is None:
        return None
    return str(value).lower()


def normalize_appliance_state(state: Optional[str]) -> Optional[str]:
    """Map "running" to "on"."""
    normalized = to_lowercase(state)
    return "on" if normalized == "running" else normalized


def normalize_connection_state(state: Optional[str]) -> str:
    return to_lowercase(state) or "disconnected"


def normalize_climate_mode(mode: Optional[str]) -> Optional[str]:
    """Lowercase a mode, mapping FANONLY to fan_only."""
    normalized = to_lowercase(mode)
    return "fan_only" if normalized == "fanonly" else normalized


def normalize_fan_speed(speed: Optional[str]) -> Optional[str]:
    """Lowercase a fan speed, mapping MIDDLE to medium."""
    normalized = to_lowercase(speed)
    return "medium" if normalized == "middle" else normalized


def denormalize_fan_speed(speed: Optional[str]) -> str:
    """Fan speed in API format (medium -> MIDDLE)."""
    if not speed:
        return ""
    if speed.lower() in ("medium", "middle"):
        return "MIDDLE"
    return speed.upper()


def denormalize_climate_mode(mode: Optional[str]) -> str:
    """Climate mode in API format (fan_only -> FANONLY)."""
    if not mode:
        return ""
    if mode.lower() == "fan_only":
        return "FANONLY"
    return mode.upper()


def extract_reported_state(raw_state: Dict[str, Any]) -> Dict[str, Any]:
    """Return properties.reported, or the state itself when it is flat."""
    properties = raw_state.get("properties")
    if isinstance(properties, dict) and isinstance(properties.get("reported"), dict):
        return properties["reported"]
    return raw_state


def _appliance_data(reported: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    data = reported.get("applianceData")
    if not isinstance(data, dict):
        return None
    return {key: data.get(key) for key in ("elc", "mac", "pnc", "sn")}


def normalize_base_fields(raw_state: Dict[str, Any]) -> NormalizedState:
    """Fields common to all Electrolux appliances."""
    reported = extract_reported_state(raw_state)
    network = reported.get("networkInterface") or {}

    return {
        # Identity
        "applianceId": raw_state.get("applianceId"),
        "status": to_lowercase(raw_state.get("status")),
        "connectionState": normalize_connection_state(raw_state.get("connectionState")),
        "applianceState": normalize_appliance_state(reported.get("applianceState")),
        # Device information
        "deviceId": reported.get("deviceId"),
        "dataModelVersion": reported.get("dataModelVersion"),
        "version": reported.get("$version", reported.get("version")),
        "applianceData": _appliance_data(reported),
        # Network
        "networkInterface": {
            "linkQualityIndicator": to_lowercase(network.get("linkQualityIndicator")),
            "rssi": network.get("rssi"),
        },
        # Scheduler
        "schedulerMode": to_lowercase(reported.get("schedulerMode")),
        "schedulerSession": to_lowercase(reported.get("schedulerSession")),
        "startTime": reported.get("startTime"),
        "stopTime": reported.get("stopTime"),
        # UI
        "uiLockMode": reported.get("uiLockMode"),
        "upgradeState": to_lowercase(reported.get("upgradeState")),
        # Diagnostics
        "capabilities": reported.get("capabilities"),
        "tasks": reported.get("tasks"),
        "logE": reported.get("logE"),
        "logW": reported.get("logW"),
        # Timezone
        "TimeZoneDaylightRule": reported.get("TimeZoneDaylightRule"),
        "TimeZoneStandardName": reported.get("TimeZoneStandardName"),
        # Firmware
        "VmNo_MCU": reported.get("VmNo_MCU"),
        "VmNo_NIU": reported.get("VmNo_NIU"),
    }


def normalize_climate_appliance(raw_state: Optional[Dict[str, Any]]) -> Optional[NormalizedState]:
    """Normalize a portable air conditioner state.

    Args:
        raw_state: State from /appliances/{id}/state, or an already
            normalized state

    Returns:
        Normalized state, or None if raw_state carries no appliance data
    """
    if not isinstance(raw_state, dict) or not raw_state:
        return None

    reported = extract_reported_state(raw_state)
    state = normalize_base_fields(raw_state)
    state.update({
        # Climate control
        "mode": normalize_climate_mode(reported.get("mode")),
        "targetTemperatureC": reported.get("targetTemperatureC"),
        "ambientTemperatureC": reported.get("ambientTemperatureC"),
        "ambientTemperatureF": reported.get("ambientTemperatureF"),
        "temperatureRepresentation": to_lowercase(reported.get("temperatureRepresentation")),
        # Fan control
        "fanSpeedSetting": normalize_fan_speed(reported.get("fanSpeedSetting")),
        "verticalSwing": to_lowercase(reported.get("verticalSwing")),
        "sleepMode": to_lowercase(reported.get("sleepMode")),
        # Compressor
        "compressorState": to_lowercase(reported.get("compressorState")),
        "compressorCoolingRuntime": reported.get("compressorCoolingRuntime"),
        "compressorHeatingRuntime": reported.get("compressorHeatingRuntime"),
        "totalRuntime": reported.get("totalRuntime"),
        # Filter
        "filterState": to_lowercase(reported.get("filterState")),
        "filterRuntime": reported.get("filterRuntime"),
        "hepaFilterLifeTime": reported.get("hepaFilterLifeTime"),
        # Advanced
        "fourWayValveState": to_lowercase(reported.get("fourWayValveState")),
        "evapDefrostState": to_lowercase(reported.get("evapDefrostState")),
    })
    return state
