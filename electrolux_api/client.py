"""Electrolux developer API client.

Polls appliance state, publishes changes and sends commands with immediate
feedback. Authentication is delegated to TokenManager.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

from .appliances.base import BaseAppliance
from .appliances.normalizers import normalize_climate_mode, normalize_fan_speed, to_lowercase
from .cache import Cache
from .config import APPLIANCES_PATH, COMMAND_STATE_DELAY, DEFAULT_REFRESH_INTERVAL, TokenStorage
from .diff import format_state_differences, get_state_differences
from .exceptions import ForbiddenError, RateLimitedError
from .models import ApplianceStub, DeviceRuntimeContext, NormalizedState
from .session import TokenManager
from .util import describe_response, format_error

_LOGGER = logging.getLogger(__name__)

HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429

# Command fields published lowercase, the way the state endpoint reports them
LOWERCASE_COMMAND_FIELDS = ("verticalSwing", "sleepMode", "temperatureRepresentation")


def _disconnected_state(device_id: str) -> Dict[str, Any]:
    return {"applianceId": device_id, "connectionState": "disconnected", "applianceState": "off"}


class ElectroluxClient:
    """Polling and command orchestrator for the appliances of one account."""

    def __init__(
        self,
        api_key: str,
        username: str,
        password: str,
        country_code: str,
        publish: Callable[[str, str], Any],
        storage: Optional[TokenStorage] = None,
        cache: Optional[Cache] = None,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        ignored_keys: Iterable[str] = (),
        show_changes: bool = False,
        command_state_delay: float = COMMAND_STATE_DELAY,
        clock: Callable[[], float] = time.monotonic,
        token_manager: Optional[TokenManager] = None,
    ):
        """Initialize the client.

        Args:
            api_key: Electrolux developer API key
            username: Electrolux account email
            password: Electrolux account password
            country_code: Two letter account country code
            publish: Callback publish(appliance_id, json_payload)
            storage: Token persistence
            cache: Raw state cache, a private one is created if omitted
            refresh_interval: Seconds between polls of one appliance
            ignored_keys: Dotted state paths excluded from change detection
            show_changes: Log the changed paths, not just that a change happened
            command_state_delay: Seconds after a command during which polls
                return the cached state
            clock: Monotonic clock for the command quiescence window
            token_manager: Pre-built token manager (credentials are then ignored)
        """
        self.publish = publish
        self.cache = cache if cache is not None else Cache()
        self.refresh_interval = refresh_interval
        self.ignored_keys = tuple(ignored_keys)
        self.show_changes = show_changes
        self.command_state_delay = command_state_delay
        self._clock = clock

        self.tokens = token_manager or TokenManager(
            api_key=api_key,
            username=username,
            password=password,
            country_code=country_code,
            storage=storage,
        )

        # appliance id -> runtime context
        self.devices: Dict[str, DeviceRuntimeContext] = {}
        self._listed = False

    # Token lifecycle

    @property
    def is_logged_in(self) -> bool:
        return self.tokens.session.is_logged_in

    async def login(self) -> bool:
        return await self.tokens.login()

    async def wait_until_logged_in(self):
        await self.tokens.wait_until_logged_in()

    async def ensure_valid_token(self):
        await self.tokens.ensure_valid_token()

    async def refresh(self) -> bool:
        return await self.tokens.refresh()

    def cleanup(self):
        """Cancel pending login and refresh retries."""
        self.tokens.cleanup()

    async def close(self):
        """Cancel retries and close the HTTP clients."""
        await self.tokens.aclose()

    # HTTP

    async def _request(self, method: str, path: str, retry_on_forbidden: bool = True, **kwargs) -> httpx.Response:
        """Send an authenticated API request.

        A 403 while logged in forces one token refresh and one retry.

        Raises:
            ForbiddenError: HTTP 403 after the retry
            RateLimitedError: HTTP 429
            httpx.HTTPError: Transport failure or other error status
        """
        await self.tokens.ensure_valid_token()
        response = await self.tokens.api.request(method, path, **kwargs)

        if response.status_code == HTTP_FORBIDDEN:
            if retry_on_forbidden and self.tokens.session.is_logged_in:
                _LOGGER.warning("Request forbidden %s, refreshing tokens and retrying", describe_response(response))
                await self.tokens.refresh()
                return await self._request(method, path, retry_on_forbidden=False, **kwargs)
            raise ForbiddenError(f"Request forbidden {describe_response(response)}", HTTP_FORBIDDEN)

        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            raise RateLimitedError(f"Rate limited {describe_response(response)}", HTTP_TOO_MANY_REQUESTS)

        response.raise_for_status()
        return response

    def _log_rate_limit(self, error: RateLimitedError):
        device_count = max(len(self.devices), 1)
        requests_per_hour = device_count * 3600 / self.refresh_interval
        _LOGGER.warning(
            "%s. Polling %d appliance(s) every %ss makes about %.0f state requests per hour; "
            "consider raising electrolux.refresh_interval (e.g. to %ss)",
            error, device_count, self.refresh_interval, requests_per_hour, self.refresh_interval * 2,
        )

    def _publish(self, device_id: str, state: Dict[str, Any]):
        self.publish(device_id, json.dumps(state))

    # Devices

    def _context(self, device_id: str) -> DeviceRuntimeContext:
        context = self.devices.get(device_id)
        if context is None:
            context = self.devices[device_id] = DeviceRuntimeContext()
        return context

    def forget_device(self, device_id: str):
        """Drop the runtime context and cached state of an appliance."""
        self.devices.pop(device_id, None)
        self.cache.delete(self.cache.cache_key(device_id).state)

    def _track_devices(self, appliances: List[ApplianceStub]):
        current_ids = {a.appliance_id for a in appliances}
        added = [a for a in appliances if a.appliance_id not in self.devices]
        removed = [device_id for device_id in self.devices if device_id not in current_ids]

        if not self._listed:
            _LOGGER.info("Found %d appliance%s:", len(appliances), "" if len(appliances) == 1 else "s")
            for appliance in appliances:
                _LOGGER.info("- %s (%s)", appliance.appliance_name, appliance.appliance_id)
        else:
            if added:
                _LOGGER.info("New appliance%s found:", "" if len(added) == 1 else "s")
                for appliance in added:
                    _LOGGER.info("- %s (%s)", appliance.appliance_name, appliance.appliance_id)
            if removed:
                _LOGGER.info("Appliance%s removed:", "" if len(removed) == 1 else "s")
                for device_id in removed:
                    name = self.devices[device_id].last_known_name or "Unknown"
                    _LOGGER.info("- %s (%s)", name, device_id)

        for device_id in removed:
            self.forget_device(device_id)
        for appliance in appliances:
            self._context(appliance.appliance_id).last_known_name = appliance.appliance_name
        self._listed = True

    async def get_device_list(self) -> Optional[List[ApplianceStub]]:
        """List the appliances of the account.

        Returns:
            Appliance stubs, or None on error
        """
        try:
            response = await self._request("GET", APPLIANCES_PATH)
            appliances = [ApplianceStub.from_api(item) for item in response.json()]
        except RateLimitedError as e:
            self._log_rate_limit(e)
            return None
        except Exception as e:
            _LOGGER.error("Error getting appliances: %s", format_error(e))
            return None

        self._track_devices(appliances)
        return appliances

    async def get_device_info(self, device_id: str) -> Optional[Dict[str, Any]]:
        """Fetch model information and capabilities of an appliance."""
        try:
            response = await self._request("GET", f"{APPLIANCES_PATH}/{device_id}/info")
            info = response.json()
        except RateLimitedError as e:
            self._log_rate_limit(e)
            return None
        except Exception as e:
            _LOGGER.error("Error getting appliance info: %s", format_error(e))
            return None

        _LOGGER.debug("Appliance info: %s", info)
        return info

    # State

    def _cached_normalized(self, appliance: BaseAppliance) -> Optional[NormalizedState]:
        cached = self.cache.get(self.cache.cache_key(appliance.appliance_id).state)
        if cached is None:
            return None
        return appliance.normalize_state(cached)

    def _log_state_changes(self, device_id: str, differences: Dict[str, Any]):
        if not differences:
            _LOGGER.debug("State checked, no changes detected")
        elif self.show_changes:
            _LOGGER.info(
                "State changed for appliance %s via API: %s", device_id, format_state_differences(differences)
            )
        else:
            _LOGGER.info("State changed for appliance %s via API", device_id)

    async def poll_device_state(
        self,
        appliance: BaseAppliance,
        on_changed: Optional[Callable[[NormalizedState], Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Fetch the state of an appliance and publish it if it changed.

        Within the command quiescence window the cached state is returned
        without a request.

        Args:
            appliance: Appliance to poll
            on_changed: Called with the normalized state when it differs
                from the cached one (not on the first fetch)

        Returns:
            Raw state, or None on error
        """
        device_id = appliance.appliance_id
        context = self._context(device_id)
        state_key = self.cache.cache_key(device_id).state

        if context.last_command_sent_at is not None:
            elapsed = self._clock() - context.last_command_sent_at
            if elapsed < self.command_state_delay:
                _LOGGER.debug(
                    "Skipping state fetch for %s: only %.0fs since command was sent (waiting %.0fs more)",
                    device_id, elapsed, self.command_state_delay - elapsed,
                )
                return self.cache.get(state_key)

        try:
            response = await self._request("GET", f"{APPLIANCES_PATH}/{device_id}/state")
            raw_state = response.json()
        except RateLimitedError as e:
            self._log_rate_limit(e)
            return None
        except Exception as e:
            _LOGGER.error("Error getting appliance state: %s", format_error(e))
            self._publish(device_id, _disconnected_state(device_id))
            return None

        normalized = appliance.normalize_state(raw_state)
        if normalized is None:
            _LOGGER.debug("Incomplete state for appliance %s, keeping cached state", device_id)
            return raw_state

        # Authoritative modes feed mode continuity for later off commands
        mode = normalized.get("mode")
        if mode and mode != "off":
            context.last_non_off_mode = mode

        first_fetch = not self.cache.has(state_key)
        differences = get_state_differences(self._cached_normalized(appliance), normalized, self.ignored_keys)
        self._log_state_changes(device_id, differences)

        if differences or first_fetch:
            self.cache.set(state_key, raw_state)
            self._publish(device_id, normalized)
            if differences and on_changed:
                on_changed(normalized)

        return raw_state

    # Commands

    def synthesize_command_state(
        self,
        appliance: BaseAppliance,
        command: Dict[str, Any],
        payload: Dict[str, Any],
    ) -> NormalizedState:
        """Build the state to publish right after a command.

        The cached state is overlaid with the command. An off command keeps
        the last active mode visible; a command without a mode sent while the
        appliance is off powers it on in its last active mode. Appliance
        specific derivations from the API payload are applied last.

        Args:
            appliance: Commanded appliance
            command: Normalized command as received over MQTT
            payload: API payload that was sent

        Returns:
            Normalized state
        """
        context = self._context(appliance.appliance_id)
        cached = self._cached_normalized(appliance) or {}

        last_mode = context.last_non_off_mode
        if last_mode is None and cached.get("mode") not in (None, "off"):
            last_mode = cached["mode"]

        state: NormalizedState = dict(cached)
        state.update(command)

        if "fanSpeedSetting" in command:
            state["fanSpeedSetting"] = normalize_fan_speed(command["fanSpeedSetting"])
        for key in LOWERCASE_COMMAND_FIELDS:
            if key in command:
                state[key] = to_lowercase(command[key])

        command_mode = normalize_climate_mode(command.get("mode")) if command.get("mode") else None
        cached_off = cached.get("applianceState") == "off" or cached.get("mode") == "off"

        if command_mode == "off":
            state["applianceState"] = "off"
            state["mode"] = last_mode or "off"
        elif command_mode:
            state["mode"] = command_mode
            context.last_non_off_mode = command_mode
        elif cached_off and last_mode:
            state["applianceState"] = "on"
            state["mode"] = last_mode

        immediate = appliance.derive_immediate_state_from_command(payload)
        if immediate:
            state.update(immediate)

        return state

    async def send_command(self, appliance: BaseAppliance, command: Dict[str, Any]) -> Optional[NormalizedState]:
        """Send a command and publish the expected resulting state.

        Args:
            appliance: Appliance to command
            command: Normalized partial state, e.g. {"mode": "cool"}

        Returns:
            The published state, or None if the command failed
        """
        device_id = appliance.appliance_id
        context = self._context(device_id)
        context.last_command_sent_at = self._clock()

        try:
            payload = appliance.transform_command_to_api(command)
            _LOGGER.info("Sending command to appliance %s: %s", device_id, payload)
            response = await self._request("PUT", f"{APPLIANCES_PATH}/{device_id}/command", json=payload)
            _LOGGER.debug("Command response: %s", response.status_code)
        except RateLimitedError as e:
            self._log_rate_limit(e)
            return None
        except Exception as e:
            _LOGGER.error("Error sending command: %s", format_error(e))
            return None

        state = self.synthesize_command_state(appliance, command, payload)
        self._publish(device_id, state)
        # Next poll diffs against what was just published
        self.cache.set(self.cache.cache_key(device_id).state, state)
        return state
