"""Home Assistant MQTT Discovery for electrolux2mqtt."""

from typing import Any, Optional

import yaml

from electrolux_api.appliances import BaseAppliance


def state_topic(topic_prefix: str, appliance_id: str) -> str:
    return f"{topic_prefix.rstrip('/')}/{appliance_id}/state"


def command_topic(topic_prefix: str, appliance_id: str) -> str:
    return f"{topic_prefix.rstrip('/')}/{appliance_id}/command"


def discovery_topic(discovery_prefix: str, appliance_id: str) -> str:
    return f"{discovery_prefix}/climate/{appliance_id}/config"


def get_device_info(appliance: BaseAppliance) -> dict:
    """Generate Home Assistant device info for an appliance."""
    info = appliance.appliance_info

    return {
        "identifiers": [appliance.appliance_id],
        "manufacturer": info.get("brand"),
        "model": info.get("model"),
        "name": appliance.appliance_name,
    }


def generate_climate_discovery(
    appliance: BaseAppliance,
    topic_prefix: str,
    state: Optional[dict] = None,
) -> dict:
    """Generate climate discovery payload.

    Args:
        appliance: Appliance to advertise
        topic_prefix: Base topic of the appliance state/command topics
        state: Latest normalized state, used for the initial target temperature

    Returns:
        Discovery payload
    """
    info = appliance.appliance_info
    temp_range = appliance.temperature_range()
    state_t = state_topic(topic_prefix, appliance.appliance_id)
    command_t = command_topic(topic_prefix, appliance.appliance_id)

    initial = temp_range["initial"]
    if state and state.get("targetTemperatureC") is not None:
        initial = state["targetTemperatureC"]

    return {
        "name": "",
        "object_id": f"{info.get('brand')}_{info.get('model')}_{info.get('serialNumber')}",
        "uniq_id": f"{info.get('brand')}_{info.get('model')}_{appliance.appliance_id}",
        "device": get_device_info(appliance),
        # Availability follows the cloud connection state
        "availability_topic": state_t,
        "availability_template": "{{ value_json.connectionState }}",
        "payload_available": "connected",
        "payload_not_available": "disconnected",
        "json_attributes_topic": state_t,
        # Mode
        "modes": appliance.supported_modes(),
        "mode_state_topic": state_t,
        "mode_state_template": (
            "{{ 'off' if value_json.applianceState == 'off' else "
            "('fan_only' if value_json.mode == 'fan_only' else value_json.mode | lower) }}"
        ),
        "mode_command_topic": command_t,
        "mode_command_template": "{ \"mode\": \"{{ 'FANONLY' if value == 'fan_only' else value | upper }}\" }",
        # Temperature
        "precision": 1,
        "temperature_unit": "C",
        "initial": initial,
        "min_temp": temp_range["min"],
        "max_temp": temp_range["max"],
        "current_temperature_topic": state_t,
        "current_temperature_template": "{{ value_json.ambientTemperatureC }}",
        "temperature_command_topic": command_t,
        "temperature_command_template": "{ \"targetTemperatureC\": {{ value }} }",
        "temperature_state_topic": state_t,
        "temperature_state_template": "{{ value_json.targetTemperatureC }}",
        # Fan
        "fan_modes": appliance.supported_fan_modes(),
        "fan_mode_state_topic": state_t,
        "fan_mode_state_template": (
            "{{ value_json.fanSpeedSetting if value_json.fanSpeedSetting != \"middle\" else \"medium\" }}"
        ),
        "fan_mode_command_topic": command_t,
        "fan_mode_command_template": (
            "{ \"fanSpeedSetting\": \"{{ 'middle' if value == 'medium' else value | upper }}\" }"
        ),
        # Swing
        "swing_modes": appliance.supported_swing_modes(),
        "swing_mode_state_topic": state_t,
        "swing_mode_state_template": "{{ value_json.verticalSwing }}",
        "swing_mode_command_topic": command_t,
        "swing_mode_command_template": "{ \"verticalSwing\": \"{{ value | upper }}\" }",
    }


def generate_discovery(
    config: dict, appliance: BaseAppliance, state: Optional[dict] = None
) -> tuple[str, dict]:
    """Generate the discovery message of an appliance.

    Returns:
        Tuple of (topic, payload)
    """
    mqtt_config = config.get("mqtt", {})
    discovery_prefix = mqtt_config.get("discovery_prefix", "homeassistant")
    topic_prefix = mqtt_config.get("topic_prefix", "electrolux2mqtt")

    topic = discovery_topic(discovery_prefix, appliance.appliance_id)
    return topic, generate_climate_discovery(appliance, topic_prefix, state)


def remove_discovery(config: dict, appliance_id: str) -> str:
    """Discovery topic to clear (publish empty payload) when an appliance is removed."""
    discovery_prefix = config.get("mqtt", {}).get("discovery_prefix", "homeassistant")
    return discovery_topic(discovery_prefix, appliance_id)


def example_config(payload: dict[str, Any]) -> str:
    """Render a discovery payload as a Home Assistant `climate:` YAML snippet.

    Used when auto discovery is disabled so the entity can be configured by hand.
    """
    dumped = yaml.safe_dump([payload], indent=4, width=200, sort_keys=False, allow_unicode=True)
    indented = "\n".join(f"  {line}" if line else line for line in dumped.splitlines())
    return f"\nclimate:\n{indented}\n"
