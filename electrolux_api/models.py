"""Data models for the Electrolux API client."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, TypedDict

# Normalized state is a plain JSON-compatible mapping
NormalizedState = Dict[str, Any]

StateDifference = TypedDict("StateDifference", {"from": Any, "to": Any})


class SessionState(Enum):
    """Token lifecycle states."""

    LOGGED_OUT = "logged_out"
    LOGGING_IN = "logging_in"
    LOGGED_IN = "logged_in"
    REFRESHING = "refreshing"


@dataclass
class Session:
    """Credentials of one client instance.

    Timestamps are epoch seconds.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    issued_at: Optional[float] = None
    expires_at: Optional[float] = None
    state: SessionState = SessionState.LOGGED_OUT

    @property
    def is_logging_in(self) -> bool:
        return self.state in (SessionState.LOGGING_IN, SessionState.REFRESHING)

    @property
    def is_logged_in(self) -> bool:
        return self.state == SessionState.LOGGED_IN

    @property
    def has_token(self) -> bool:
        return bool(self.access_token and self.expires_at)

    def clear(self):
        """Drop all token material."""
        self.access_token = None
        self.refresh_token = None
        self.issued_at = None
        self.expires_at = None


@dataclass
class DeviceRuntimeContext:
    """Ephemeral per-appliance bookkeeping owned by the client."""

    last_command_sent_at: Optional[float] = None
    last_non_off_mode: Optional[str] = None
    last_known_name: Optional[str] = None


@dataclass(frozen=True)
class ApplianceStub:
    """Appliance entry as returned by the appliance list endpoint."""

    appliance_id: str
    appliance_name: str
    appliance_type: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ApplianceStub":
        return cls(
            appliance_id=data["applianceId"],
            appliance_name=data.get("applianceName", ""),
            appliance_type=data.get("applianceType", ""),
        )
