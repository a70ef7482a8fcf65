"""Base class for Electrolux appliance capabilities."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import ApplianceStub, NormalizedState


class BaseAppliance(ABC):
    """One appliance: identity plus model specific state and command mapping.

    Subclasses translate between the Electrolux API format and the
    normalized format that is published over MQTT.
    """

    def __init__(self, stub: ApplianceStub, info: Dict[str, Any]):
        """Initialize the appliance.

        Args:
            stub: Entry from the appliance list endpoint
            info: Response of /appliances/{id}/info (applianceInfo, capabilities)
        """
        self.appliance_id = stub.appliance_id
        self.appliance_name = stub.appliance_name
        self.appliance_type = stub.appliance_type
        self.info = info or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.appliance_id!r}, {self.appliance_name!r})"

    @property
    def appliance_info(self) -> Dict[str, Any]:
        """The applianceInfo section (brand, model, serialNumber, ...)."""
        return self.info.get("applianceInfo") or {}

    @property
    def capabilities(self) -> Dict[str, Any]:
        return self.info.get("capabilities") or {}

    @abstractmethod
    def normalize_state(self, raw_state: Dict[str, Any]) -> Optional[NormalizedState]:
        """Convert an API state (or an already normalized one) to normalized form.

        Returns None when the response is too incomplete to normalize.
        """

    @abstractmethod
    def transform_command_to_api(self, command: Dict[str, Any]) -> Dict[str, Any]:
        """Convert a normalized MQTT command to an API command payload."""

    def derive_immediate_state_from_command(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """State fields implied by a command payload, applied before the API confirms.

        Args:
            payload: API command payload that was sent

        Returns:
            Partial normalized state, or None
        """
        return None

    @abstractmethod
    def supported_modes(self) -> List[str]:
        """Climate modes, Home Assistant naming."""

    @abstractmethod
    def supported_fan_modes(self) -> List[str]:
        pass

    @abstractmethod
    def supported_swing_modes(self) -> List[str]:
        pass

    @abstractmethod
    def temperature_range(self) -> Dict[str, float]:
        """Dict with 'min', 'max' and 'initial' target temperature."""

    @abstractmethod
    def model_name(self) -> str:
        """Model identifier used for factory matching."""
