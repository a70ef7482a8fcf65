"""Electrolux developer API client.

Cookie based login, token lifecycle, state polling with change detection and
commands with immediate state feedback.
"""

from .appliances import (
    BaseAppliance,
    Comfort600Appliance,
    SUPPORTED_MODELS,
    create_appliance,
)
from .cache import Cache, CacheKeys
from .client import ElectroluxClient
from .config import (
    API_BASE_URL,
    COMMAND_STATE_DELAY,
    DEFAULT_REFRESH_INTERVAL,
    TOKEN_REFRESH_THRESHOLD,
    TokenStorage,
)
from .diff import format_state_differences, get_state_differences
from .exceptions import (
    ApiError,
    AuthenticationError,
    ElectroluxError,
    ForbiddenError,
    RateLimitedError,
    TokenRejectedError,
)
from .models import (
    ApplianceStub,
    DeviceRuntimeContext,
    NormalizedState,
    Session,
    SessionState,
    StateDifference,
)
from .session import TokenManager

__version__ = "1.0.0"
__all__ = [
    # Client
    "ElectroluxClient",
    "TokenManager",
    # Appliances
    "BaseAppliance",
    "Comfort600Appliance",
    "SUPPORTED_MODELS",
    "create_appliance",
    # Change detection
    "Cache",
    "CacheKeys",
    "get_state_differences",
    "format_state_differences",
    # Models
    "ApplianceStub",
    "DeviceRuntimeContext",
    "NormalizedState",
    "Session",
    "SessionState",
    "StateDifference",
    # Storage
    "TokenStorage",
    # Constants
    "API_BASE_URL",
    "COMMAND_STATE_DELAY",
    "DEFAULT_REFRESH_INTERVAL",
    "TOKEN_REFRESH_THRESHOLD",
    # Exceptions
    "ElectroluxError",
    "AuthenticationError",
    "ApiError",
    "TokenRejectedError",
    "ForbiddenError",
    "RateLimitedError",
]
