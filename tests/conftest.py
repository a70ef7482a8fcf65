"""Fixtures for electrolux2mqtt tests."""

from __future__ import annotations

import base64
import copy
import json
import time
from unittest.mock import MagicMock

import pytest

from electrolux_api import Cache, Comfort600Appliance, ElectroluxClient, TokenManager, TokenStorage
from electrolux_api.models import ApplianceStub

APPLIANCE_ID = "999011524_00:94700001-443E07363DAB"


def create_test_jwt(exp_timestamp: int | None = None, iat_timestamp: int | None = None) -> str:
    """Create an unsigned test JWT.

    Args:
        exp_timestamp: Expiry, defaults to 12 hours from now
        iat_timestamp: Issue time, defaults to now
    """
    now = int(time.time())
    if exp_timestamp is None:
        exp_timestamp = now + 12 * 3600
    if iat_timestamp is None:
        iat_timestamp = now

    header = {"alg": "RS256", "typ": "JWT"}
    payload = {"exp": exp_timestamp, "iat": iat_timestamp, "sub": "test_user"}

    header_encoded = base64.urlsafe_b64encode(json.dumps(header).encode()).decode().rstrip("=")
    payload_encoded = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")

    return f"{header_encoded}.{payload_encoded}.signature"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


# Appliance list entry
MOCK_APPLIANCE = {
    "applianceId": APPLIANCE_ID,
    "applianceName": "Bedroom AC",
    "applianceType": "PORTABLE_AIR_CONDITIONER",
    "created": "2024-05-01T10:00:00.000Z",
}

# /appliances/{id}/info
MOCK_APPLIANCE_INFO = {
    "applianceInfo": {
        "serialNumber": "12345678",
        "pnc": "950011538",
        "brand": "ELECTROLUX",
        "deviceType": "PORTABLE_AIR_CONDITIONER",
        "model": "COMFORT600",
        "variant": "AZULTM10",
        "colour": "WHITE",
    },
    "capabilities": {
        "targetTemperatureC": {"access": "readwrite", "type": "temperature", "min": 16, "max": 32, "step": 1, "default": 22},
        "mode": {"values": {"AUTO": {}, "COOL": {}, "DRY": {}, "FANONLY": {}, "HEAT": {}, "OFF": {}}},
        "fanSpeedSetting": {"values": {"AUTO": {}, "HIGH": {}, "LOW": {}, "MIDDLE": {}}},
        "verticalSwing": {"values": {"OFF": {}, "ON": {}}},
    },
}

# /appliances/{id}/state
MOCK_APPLIANCE_STATE = {
    "applianceId": APPLIANCE_ID,
    "connectionState": "Connected",
    "status": "enabled",
    "properties": {
        "reported": {
            "applianceState": "running",
            "mode": "COOL",
            "targetTemperatureC": 22,
            "ambientTemperatureC": 25,
            "ambientTemperatureF": 77,
            "temperatureRepresentation": "CELSIUS",
            "fanSpeedSetting": "MIDDLE",
            "verticalSwing": "ON",
            "sleepMode": "OFF",
            "compressorState": "ON",
            "filterState": "CLEAN",
            "deviceId": "94700001",
            "dataModelVersion": "1.0.0",
            "$version": 42,
            "applianceData": {"elc": "00", "mac": "aabbccddeeff", "pnc": "950011538", "sn": "12345678"},
            "networkInterface": {"linkQualityIndicator": "EXCELLENT", "rssi": -48},
            "uiLockMode": False,
            "upgradeState": "IDLE",
        }
    },
}


def make_state(**reported) -> dict:
    """Copy of MOCK_APPLIANCE_STATE with reported fields overridden."""
    state = copy.deepcopy(MOCK_APPLIANCE_STATE)
    state["properties"]["reported"].update(reported)
    return state


@pytest.fixture
def stub() -> ApplianceStub:
    return ApplianceStub.from_api(MOCK_APPLIANCE)


@pytest.fixture
def appliance(stub: ApplianceStub) -> Comfort600Appliance:
    return Comfort600Appliance(stub, copy.deepcopy(MOCK_APPLIANCE_INFO))


@pytest.fixture
def token_storage(tmp_path) -> TokenStorage:
    return TokenStorage(tmp_path / "tokens.json")


@pytest.fixture
def token_manager(token_storage: TokenStorage) -> TokenManager:
    """Logged out token manager with slow retries (they never fire in tests)."""
    return TokenManager(
        api_key="test-api-key",
        username="user@example.com",
        password="secret",
        country_code="FI",
        storage=token_storage,
        login_retry_delay=60,
        refresh_retry_delay=60,
    )


@pytest.fixture
def access_token() -> str:
    return create_test_jwt()


@pytest.fixture
def logged_in_manager(token_storage: TokenStorage, access_token: str) -> TokenManager:
    """Token manager started from stored tokens valid for 12 hours."""
    token_storage.save(access_token, "stored-refresh-token", time.time() + 12 * 3600, time.time())
    return TokenManager(
        api_key="test-api-key",
        username="user@example.com",
        password="secret",
        country_code="FI",
        storage=token_storage,
        login_retry_delay=60,
        refresh_retry_delay=60,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def publish() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(logged_in_manager: TokenManager, publish: MagicMock, clock: FakeClock) -> ElectroluxClient:
    return ElectroluxClient(
        api_key="test-api-key",
        username="user@example.com",
        password="secret",
        country_code="FI",
        publish=publish,
        cache=Cache(),
        refresh_interval=30,
        clock=clock,
        token_manager=logged_in_manager,
    )


def published_states(publish: MagicMock) -> list[dict]:
    """Decode every payload passed to a publish mock."""
    return [json.loads(call.args[1]) for call in publish.call_args_list]
