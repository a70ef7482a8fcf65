"""Appliance capability objects."""

from .base import BaseAppliance
from .comfort600 import Comfort600Appliance
from .factory import SUPPORTED_MODELS, create_appliance

__all__ = [
    "BaseAppliance",
    "Comfort600Appliance",
    "SUPPORTED_MODELS",
    "create_appliance",
]
