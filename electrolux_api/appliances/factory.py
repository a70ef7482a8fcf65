"""Pick the appliance class for an appliance info response."""

import logging
from typing import Any, Dict, List

from ..models import ApplianceStub
from .base import BaseAppliance
from .comfort600 import MODEL_NAME as COMFORT600, Comfort600Appliance

_LOGGER = logging.getLogger(__name__)

PORTABLE_AIR_CONDITIONER = "PORTABLE_AIR_CONDITIONER"

SUPPORTED_MODELS: List[str] = [COMFORT600]


def create_appliance(stub: ApplianceStub, info: Dict[str, Any]) -> BaseAppliance:
    """Create the appliance object matching the model information.

    Matches by model name first, then by device type and variant. Unknown
    models fall back to the COMFORT600 implementation.

    Args:
        stub: Entry from the appliance list endpoint
        info: Response of /appliances/{id}/info

    Returns:
        Appliance instance
    """
    appliance_info = (info or {}).get("applianceInfo") or {}
    model = appliance_info.get("model")
    device_type = appliance_info.get("deviceType")
    variant = appliance_info.get("variant") or ""

    _LOGGER.debug(
        "Creating appliance instance for model: %s, deviceType: %s, variant: %s",
        model, device_type, variant,
    )

    if model == COMFORT600:
        _LOGGER.info("Matched appliance %s to %s model", stub.appliance_id, COMFORT600)
        return Comfort600Appliance(stub, info)

    if device_type == PORTABLE_AIR_CONDITIONER and "AZUL" in variant:
        _LOGGER.info(
            "Matched appliance %s to %s model via device type and variant", stub.appliance_id, COMFORT600
        )
        return Comfort600Appliance(stub, info)

    _LOGGER.warning(
        "No specific model match found for %s/%s/%s, falling back to %s implementation",
        model, device_type, variant, COMFORT600,
    )
    return Comfort600Appliance(stub, info)
