"""Tests for the MQTT bridge."""

from __future__ import annotations

import asyncio
import copy
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from electrolux_api import Cache, ElectroluxClient
from electrolux_api.models import ApplianceStub

from electrolux2mqtt.bridge import ElectroluxMQTTBridge
from electrolux2mqtt.config import DEFAULT_CONFIG, deep_merge

from .conftest import APPLIANCE_ID, MOCK_APPLIANCE, MOCK_APPLIANCE_INFO

DISCOVERY_TOPIC = f"homeassistant/climate/{APPLIANCE_ID}/config"


@pytest.fixture
def mock_client() -> MagicMock:
    """API client double with an empty account."""
    client = MagicMock(spec=ElectroluxClient)
    client.cache = Cache()
    client.is_logged_in = True
    client.get_device_list = AsyncMock(return_value=[ApplianceStub.from_api(MOCK_APPLIANCE)])
    client.get_device_info = AsyncMock(return_value=copy.deepcopy(MOCK_APPLIANCE_INFO))
    client.send_command = AsyncMock(return_value={"mode": "cool"})
    client.poll_device_state = AsyncMock(return_value=None)
    return client


@pytest.fixture
def bridge_config() -> dict:
    return deep_merge(
        DEFAULT_CONFIG,
        {
            "electrolux": {
                "api_key": "key",
                "username": "user@example.com",
                "password": "secret",
                "country_code": "FI",
            }
        },
    )


@pytest.fixture
def broker() -> MagicMock:
    broker = MagicMock()
    broker.is_connected.return_value = True
    return broker


@pytest.fixture
def bridge(bridge_config: dict, mock_client: MagicMock, broker: MagicMock) -> ElectroluxMQTTBridge:
    bridge = ElectroluxMQTTBridge(bridge_config, client=mock_client)
    bridge._broker_client = broker
    return bridge


def published(broker: MagicMock, topic: str) -> list:
    return [c for c in broker.publish.call_args_list if c.args[0] == topic]


def test_bridge_shares_cache_with_client(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    assert bridge.cache is mock_client.cache


def test_bridge_builds_client_from_config(bridge_config: dict, tmp_path) -> None:
    """Test that the default client publishes through the bridge."""
    bridge_config["electrolux"]["token_file"] = str(tmp_path / "tokens.json")

    bridge = ElectroluxMQTTBridge(bridge_config)

    assert isinstance(bridge.client, ElectroluxClient)
    assert bridge.client.cache is bridge.cache
    assert bridge.client.publish == bridge.publish_state
    assert bridge.client.tokens.storage.storage_path == tmp_path / "tokens.json"


@pytest.mark.parametrize(
    ("topic", "expected"),
    [
        (f"electrolux2mqtt/{APPLIANCE_ID}/command", APPLIANCE_ID),
        (f"electrolux2mqtt/{APPLIANCE_ID}/state", None),
        ("electrolux2mqtt/a/b/command", None),
        ("electrolux2mqtt//command", None),
        (f"other/{APPLIANCE_ID}/command", None),
    ],
)
def test_parse_command_topic(bridge: ElectroluxMQTTBridge, topic: str, expected) -> None:
    assert bridge._parse_command_topic(topic) == expected


def test_publish_state(bridge: ElectroluxMQTTBridge, broker: MagicMock) -> None:
    bridge.publish_state(APPLIANCE_ID, '{"mode": "cool"}')

    broker.publish.assert_called_once_with(
        f"electrolux2mqtt/{APPLIANCE_ID}/state", '{"mode": "cool"}', qos=0, retain=False
    )


def test_publish_dropped_while_disconnected(bridge: ElectroluxMQTTBridge, broker: MagicMock) -> None:
    broker.is_connected.return_value = False

    bridge.publish_state(APPLIANCE_ID, "{}")

    broker.publish.assert_not_called()


def test_on_connect_subscribes_and_announces(bridge: ElectroluxMQTTBridge, broker: MagicMock) -> None:
    reason_code = MagicMock(is_failure=False)

    bridge._on_broker_connect(broker, None, None, reason_code, None)

    broker.subscribe.assert_called_once_with("electrolux2mqtt/+/command", qos=0)
    broker.publish.assert_called_once_with("electrolux2mqtt/availability", "online", qos=1, retain=True)


@pytest.mark.asyncio
async def test_publish_discovery_deduplicates(bridge: ElectroluxMQTTBridge, broker: MagicMock) -> None:
    """Test that an unchanged discovery document is published once."""
    await bridge.sync_appliances()
    broker.publish.reset_mock()
    appliance = bridge.appliances[APPLIANCE_ID]

    assert bridge.publish_discovery(appliance) is False
    assert bridge.publish_discovery(appliance, {"targetTemperatureC": 18}) is True
    assert bridge.publish_discovery(appliance, {"targetTemperatureC": 18}) is False

    calls = published(broker, DISCOVERY_TOPIC)
    assert len(calls) == 1
    assert json.loads(calls[0].args[1])["initial"] == 18
    assert calls[0].kwargs == {"qos": 2, "retain": True}


@pytest.mark.asyncio
async def test_reconnect_republishes_discovery(bridge: ElectroluxMQTTBridge, broker: MagicMock) -> None:
    await bridge.sync_appliances()
    broker.publish.reset_mock()

    bridge._republish_discovery()

    assert len(published(broker, DISCOVERY_TOPIC)) == 1


@pytest.mark.asyncio
async def test_handle_command(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    await bridge.sync_appliances()

    result = await bridge.handle_command(APPLIANCE_ID, '{"mode": "cool"}')

    assert result == {"mode": "cool"}
    mock_client.send_command.assert_awaited_once_with(bridge.appliances[APPLIANCE_ID], {"mode": "cool"})


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", ["{not json", '["cool"]', '"cool"'])
async def test_handle_malformed_command(
    bridge: ElectroluxMQTTBridge, mock_client: MagicMock, payload: str, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that malformed payloads are logged and dropped."""
    await bridge.sync_appliances()

    assert await bridge.handle_command(APPLIANCE_ID, payload) is None
    mock_client.send_command.assert_not_awaited()
    assert "Invalid command" in caplog.text


@pytest.mark.asyncio
async def test_handle_command_unknown_appliance(
    bridge: ElectroluxMQTTBridge, mock_client: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    assert await bridge.handle_command("unknown", '{"mode": "cool"}') is None
    mock_client.send_command.assert_not_awaited()
    assert "unknown appliance" in caplog.text


@pytest.mark.asyncio
async def test_message_callback_dispatches_command(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    """Test the hand-off from the MQTT network thread to the event loop."""
    await bridge.sync_appliances()
    bridge._loop = asyncio.get_running_loop()
    message = MagicMock(topic=f"electrolux2mqtt/{APPLIANCE_ID}/command", payload=b'{"targetTemperatureC": 21}')

    bridge._on_broker_message(None, None, message)
    for _ in range(3):
        await asyncio.sleep(0)

    mock_client.send_command.assert_awaited_once_with(bridge.appliances[APPLIANCE_ID], {"targetTemperatureC": 21})


@pytest.mark.asyncio
async def test_sync_appliances_adds_appliance(
    bridge: ElectroluxMQTTBridge, mock_client: MagicMock, broker: MagicMock
) -> None:
    """Test that a listed appliance is created, announced and polled."""
    ids = await bridge.sync_appliances()

    assert ids == [APPLIANCE_ID]
    assert bridge.appliances[APPLIANCE_ID].model_name() == "COMFORT600"
    mock_client.get_device_info.assert_awaited_once_with(APPLIANCE_ID)
    assert len(published(broker, DISCOVERY_TOPIC)) == 1
    assert APPLIANCE_ID in bridge._pollers


@pytest.mark.asyncio
async def test_sync_appliances_removes_appliance(
    bridge: ElectroluxMQTTBridge, mock_client: MagicMock, broker: MagicMock
) -> None:
    """Test that a vanished appliance is torn down and its discovery cleared."""
    await bridge.sync_appliances()
    poller = bridge._pollers[APPLIANCE_ID]
    mock_client.get_device_list.return_value = []

    ids = await bridge.sync_appliances()
    await asyncio.sleep(0)

    assert ids == []
    assert APPLIANCE_ID not in bridge.appliances
    assert APPLIANCE_ID not in bridge._pollers
    assert poller.done()
    mock_client.forget_device.assert_called_once_with(APPLIANCE_ID)
    assert published(broker, DISCOVERY_TOPIC)[-1].args[1] == ""
    assert not bridge.cache.has(bridge.cache.cache_key(APPLIANCE_ID).auto_discovery)


@pytest.mark.asyncio
async def test_sync_appliances_listing_error(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    """Test that a failed listing keeps the current appliances."""
    await bridge.sync_appliances()
    mock_client.get_device_list.return_value = None

    assert await bridge.sync_appliances() == [APPLIANCE_ID]


@pytest.mark.asyncio
async def test_sync_appliances_info_error(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    mock_client.get_device_info.return_value = None

    assert await bridge.sync_appliances() == []


@pytest.mark.asyncio
async def test_discovery_disabled_logs_example_config(
    bridge: ElectroluxMQTTBridge, broker: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level("INFO")
    bridge.auto_discovery = False

    await bridge.sync_appliances()

    assert published(broker, DISCOVERY_TOPIC) == []
    assert "climate:" in caplog.text


@pytest.mark.asyncio
async def test_poll_loop_polls_until_stopped(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    bridge.running = True
    bridge.refresh_interval = 0
    await bridge.sync_appliances()

    for _ in range(5):
        await asyncio.sleep(0)
    bridge.running = False
    await asyncio.sleep(0)

    assert mock_client.poll_device_state.await_count >= 1
    appliance, on_changed = mock_client.poll_device_state.await_args.args
    assert appliance is bridge.appliances[APPLIANCE_ID]
    assert on_changed is not None


@pytest.mark.asyncio
async def test_stop(bridge: ElectroluxMQTTBridge, mock_client: MagicMock, broker: MagicMock) -> None:
    """Test that stopping cancels pollers, closes the client and goes offline."""
    bridge.running = True
    await bridge.sync_appliances()
    poller = bridge._pollers[APPLIANCE_ID]

    await bridge.stop()
    await bridge.stop()

    assert poller.cancelled()
    mock_client.cleanup.assert_called_once()
    mock_client.close.assert_awaited_once()
    broker.publish.assert_called_with("electrolux2mqtt/availability", "offline", qos=1, retain=True)
    broker.disconnect.assert_called_once()
    broker.loop_stop.assert_called_once()


@pytest.mark.asyncio
async def test_wait_for_login_resumes_on_signal(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    """Test that startup waits for the login signal when the first attempt fails."""
    mock_client.is_logged_in = False
    mock_client.login = AsyncMock(return_value=False)
    mock_client.wait_until_logged_in = AsyncMock(return_value=None)
    bridge._stop_event = asyncio.Event()

    await asyncio.wait_for(bridge._wait_for_login(), timeout=1)

    mock_client.login.assert_awaited_once()
    mock_client.wait_until_logged_in.assert_awaited_once()


@pytest.mark.asyncio
async def test_wait_for_login_stops_on_request(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    """Test that a stop request ends the wait for a login that never succeeds."""
    never = asyncio.Event()
    mock_client.is_logged_in = False
    mock_client.login = AsyncMock(return_value=False)
    mock_client.wait_until_logged_in = AsyncMock(side_effect=never.wait)
    bridge._stop_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, bridge.request_stop)

    await asyncio.wait_for(bridge._wait_for_login(), timeout=1)

    assert bridge._stop_event.is_set()


@pytest.mark.asyncio
async def test_wait_for_login_skips_when_logged_in(bridge: ElectroluxMQTTBridge, mock_client: MagicMock) -> None:
    mock_client.login = AsyncMock()

    await bridge._wait_for_login()

    mock_client.login.assert_not_awaited()
