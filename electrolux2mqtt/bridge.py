"""Main bridge class for electrolux2mqtt."""

import asyncio
import json
import logging
import signal
from typing import Any, Dict, List, Optional, Set

import paho.mqtt.client as mqtt

from electrolux_api import Cache, ElectroluxClient, TokenStorage, create_appliance
from electrolux_api.appliances import BaseAppliance
from electrolux_api.models import ApplianceStub

from .discovery import example_config, generate_discovery, remove_discovery, state_topic

logger = logging.getLogger(__name__)

BROKER_RETRY_INTERVAL = 30
DISCOVERY_QOS = 2


class ElectroluxMQTTBridge:
    """Bridge between the MQTT broker and the Electrolux cloud API."""

    def __init__(self, config: dict, client: Optional[ElectroluxClient] = None):
        """Initialize the bridge.

        Args:
            config: Configuration dictionary
            client: Pre-built API client (built from config if omitted)
        """
        self.config = config
        self.running = False

        mqtt_config = config.get("mqtt", {})
        self.topic_prefix = mqtt_config.get("topic_prefix", "electrolux2mqtt").rstrip("/")
        self.qos = mqtt_config.get("qos", 0)
        self.retain = mqtt_config.get("retain", False)
        self.auto_discovery = config.get("home_assistant", {}).get("auto_discovery", True)

        electrolux_config = config.get("electrolux", {})
        self.refresh_interval = electrolux_config.get("refresh_interval", 30)
        self.device_refresh_interval = electrolux_config.get("device_refresh_interval", 3600)

        # Raw state and discovery documents, shared with the API client
        self.cache = client.cache if client else Cache()

        logging_config = config.get("logging", {})
        self.client = client or ElectroluxClient(
            api_key=electrolux_config.get("api_key"),
            username=electrolux_config.get("username"),
            password=electrolux_config.get("password"),
            country_code=electrolux_config.get("country_code"),
            publish=self.publish_state,
            storage=TokenStorage(electrolux_config.get("token_file")),
            cache=self.cache,
            refresh_interval=self.refresh_interval,
            ignored_keys=logging_config.get("ignored_keys") or (),
            show_changes=logging_config.get("show_changes", False),
        )

        # appliance id -> appliance
        self.appliances: Dict[str, BaseAppliance] = {}

        # MQTT client for broker (Home Assistant)
        self._broker_client: Optional[mqtt.Client] = None

        # Event loop state
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._pollers: Dict[str, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._stopped = False

    @property
    def availability_topic(self) -> str:
        return f"{self.topic_prefix}/availability"

    @property
    def command_topic_filter(self) -> str:
        return f"{self.topic_prefix}/+/command"

    # MQTT

    def _setup_broker_client(self):
        """Set up MQTT broker client."""
        mqtt_config = self.config.get("mqtt", {})

        self._broker_client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=mqtt_config.get("client_id", "electrolux2mqtt"),
            clean_session=True,
        )

        # Auth
        username = mqtt_config.get("username")
        password = mqtt_config.get("password")
        if username:
            self._broker_client.username_pw_set(username, password)

        # Callbacks
        self._broker_client.on_connect = self._on_broker_connect
        self._broker_client.on_disconnect = self._on_broker_disconnect
        self._broker_client.on_message = self._on_broker_message

        # Last Will and Testament
        self._broker_client.will_set(self.availability_topic, payload="offline", qos=1, retain=True)

    def _on_broker_connect(self, client, userdata, flags, reason_code, properties):
        """Handle broker connection (paho network thread)."""
        if reason_code.is_failure:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            return

        logger.info("Connected to MQTT broker")

        client.subscribe(self.command_topic_filter, qos=self.qos)
        logger.info(f"Subscribed to command topics: {self.command_topic_filter}")

        self._publish_availability(True)

        if self._loop:
            self._loop.call_soon_threadsafe(self._republish_discovery)

    def _on_broker_disconnect(self, client, userdata, flags, reason_code, properties):
        logger.warning(f"Disconnected from MQTT broker: {reason_code}")

    def _on_broker_message(self, client, userdata, msg):
        """Handle incoming MQTT messages (paho network thread)."""
        appliance_id = self._parse_command_topic(msg.topic)
        if appliance_id is None:
            logger.debug(f"Ignoring message on {msg.topic}")
            return

        payload = msg.payload.decode("utf-8", errors="replace").strip()
        logger.debug(f"Received: {msg.topic} = {payload}")

        if self._loop:
            self._loop.call_soon_threadsafe(self._spawn, self.handle_command(appliance_id, payload))

    def _parse_command_topic(self, topic: str) -> Optional[str]:
        prefix = f"{self.topic_prefix}/"
        suffix = "/command"
        if not topic.startswith(prefix) or not topic.endswith(suffix):
            return None
        appliance_id = topic[len(prefix):-len(suffix)]
        if not appliance_id or "/" in appliance_id:
            return None
        return appliance_id

    def _publish(self, topic: str, payload: str, qos: int, retain: bool):
        if self._broker_client and self._broker_client.is_connected():
            self._broker_client.publish(topic, payload, qos=qos, retain=retain)
            logger.debug(f"Published: {topic} = {payload}")
        else:
            logger.debug(f"Broker not connected, dropped message for {topic}")

    def publish_state(self, appliance_id: str, payload: str):
        """Publish an appliance state (API client publish callback)."""
        self._publish(state_topic(self.topic_prefix, appliance_id), payload, self.qos, self.retain)

    def _publish_availability(self, available: bool):
        value = "online" if available else "offline"
        self._publish(self.availability_topic, value, qos=1, retain=True)
        logger.info(f"Availability: {value}")

    # Discovery

    def publish_discovery(self, appliance: BaseAppliance, state: Optional[dict] = None) -> bool:
        """Publish the Home Assistant discovery document if it changed.

        Returns:
            True if a message was published
        """
        topic, payload = generate_discovery(self.config, appliance, state)
        cache_key = self.cache.cache_key(appliance.appliance_id).auto_discovery

        if self.cache.match_by_value(cache_key, payload):
            return False

        self._publish(topic, json.dumps(payload), qos=DISCOVERY_QOS, retain=True)
        logger.info(f"Published discovery for {appliance.appliance_name} ({appliance.appliance_id})")
        return True

    def _republish_discovery(self):
        """Publish discovery for every known appliance after a (re)connect."""
        if not self.auto_discovery:
            return
        for appliance in self.appliances.values():
            self.cache.delete(self.cache.cache_key(appliance.appliance_id).auto_discovery)
            self.publish_discovery(appliance)

    def _on_state_changed(self, appliance: BaseAppliance):
        def callback(state: dict):
            self.publish_discovery(appliance, state)

        return callback

    # Commands

    async def handle_command(self, appliance_id: str, payload: str) -> Optional[dict]:
        """Parse and forward a command received over MQTT.

        Malformed payloads and unknown appliances are logged and dropped.
        """
        try:
            command = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid command for {appliance_id}: {e}")
            return None

        if not isinstance(command, dict):
            logger.error(f"Invalid command for {appliance_id}: expected a JSON object, got {payload}")
            return None

        appliance = self.appliances.get(appliance_id)
        if appliance is None:
            logger.warning(f"Command for unknown appliance: {appliance_id}")
            return None

        logger.info(f"Command for {appliance_id}: {command}")
        return await self.client.send_command(appliance, command)

    # Appliances

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _poll_loop(self, appliance: BaseAppliance, delay: float):
        """Poll one appliance every refresh interval."""
        on_changed = self._on_state_changed(appliance) if self.auto_discovery else None

        if delay:
            await asyncio.sleep(delay)

        while self.running:
            try:
                await self.client.poll_device_state(appliance, on_changed)
            except Exception as e:
                logger.error(f"Poll error for {appliance.appliance_id}: {e}", exc_info=True)
            await asyncio.sleep(self.refresh_interval)

    async def _add_appliance(self, stub: ApplianceStub, delay: float):
        info = await self.client.get_device_info(stub.appliance_id)
        if not info:
            logger.error(f"Failed to get appliance info for {stub.appliance_id}")
            return

        appliance = create_appliance(stub, info)
        self.appliances[stub.appliance_id] = appliance

        if self.auto_discovery:
            self.publish_discovery(appliance)
        else:
            _, payload = generate_discovery(self.config, appliance)
            logger.info(f"Example config:{example_config(payload)}")

        self._pollers[stub.appliance_id] = self._spawn(self._poll_loop(appliance, delay))

    def _remove_appliance(self, appliance_id: str):
        task = self._pollers.pop(appliance_id, None)
        if task:
            task.cancel()

        self.appliances.pop(appliance_id, None)
        self.client.forget_device(appliance_id)
        self.cache.delete(self.cache.cache_key(appliance_id).auto_discovery)

        if self.auto_discovery:
            self._publish(remove_discovery(self.config, appliance_id), "", qos=DISCOVERY_QOS, retain=True)

    async def sync_appliances(self) -> List[str]:
        """Reconcile pollers with the appliance list of the account.

        New appliances get a poller, staggered across the refresh interval;
        removed ones are torn down.

        Returns:
            Ids of the appliances being polled
        """
        stubs = await self.client.get_device_list()
        if stubs is None:
            return list(self.appliances)

        if not stubs:
            logger.error(
                "No appliances found. Check your configuration and make sure appliances are "
                "registered in the Electrolux app."
            )

        current_ids = {stub.appliance_id for stub in stubs}
        for appliance_id in list(self.appliances):
            if appliance_id not in current_ids:
                self._remove_appliance(appliance_id)

        new_stubs = [stub for stub in stubs if stub.appliance_id not in self.appliances]
        for index, stub in enumerate(new_stubs):
            delay = index * self.refresh_interval / len(new_stubs)
            await self._add_appliance(stub, delay)

        return list(self.appliances)

    async def _device_refresh_loop(self):
        while self.running:
            # Retry sooner while nothing is found
            interval = self.device_refresh_interval if self.appliances else self.refresh_interval
            await asyncio.sleep(interval)
            await self.sync_appliances()

    # Lifecycle

    async def _connect_broker(self) -> bool:
        mqtt_config = self.config.get("mqtt", {})
        host = mqtt_config.get("host", "localhost")
        port = mqtt_config.get("port", 1883)

        logger.info(f"Connecting to MQTT broker at {host}:{port}")
        while self.running:
            try:
                await self._loop.run_in_executor(None, self._broker_client.connect, host, port, 60)
                self._broker_client.loop_start()
                return True
            except OSError as e:
                logger.error(f"Failed to connect to MQTT broker: {e}")
                logger.info(f"Retrying in {BROKER_RETRY_INTERVAL} seconds...")
                await asyncio.sleep(BROKER_RETRY_INTERVAL)
        return False

    async def _wait_for_login(self):
        """Log in, then wait for the token manager's retries or a stop request."""
        if not self.client.is_logged_in:
            await self.client.login()
        if self.client.is_logged_in:
            return

        logger.info("Waiting for login to succeed...")
        waiters = {
            asyncio.ensure_future(self.client.wait_until_logged_in()),
            asyncio.ensure_future(self._stop_event.wait()),
        }
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

    def request_stop(self, signum: Any = None):
        if signum is not None:
            logger.info(f"Received signal {signum}")
        self.running = False
        if self._stop_event:
            self._stop_event.set()

    async def run(self):
        """Run the bridge until a stop is requested."""
        logger.info("Starting electrolux2mqtt bridge...")

        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self.running = True

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self.request_stop, sig)
            except NotImplementedError:
                logger.debug(f"Signal handlers not supported for {sig}")

        self._setup_broker_client()

        try:
            if not await self._connect_broker():
                return

            await self._wait_for_login()
            if self.running:
                await self.sync_appliances()
                self._spawn(self._device_refresh_loop())
                logger.info("electrolux2mqtt bridge started")
                await self._stop_event.wait()
        finally:
            await self.stop()

    async def stop(self):
        """Stop the bridge."""
        if self._stopped:
            return
        self._stopped = True

        logger.info("Stopping electrolux2mqtt bridge...")
        self.running = False

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pollers.clear()

        self.client.cleanup()
        await self.client.close()

        # Publish offline status
        self._publish_availability(False)

        if self._broker_client:
            self._broker_client.disconnect()
            self._broker_client.loop_stop()

        logger.info("electrolux2mqtt bridge stopped")

    def run_forever(self):
        """Run the bridge until interrupted."""
        asyncio.run(self.run())
