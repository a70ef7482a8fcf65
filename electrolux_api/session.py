"""Token lifecycle for the Electrolux developer API.

Owns the single Session of a client: the cookie based login flow, token
refresh, token persistence and the request gate that holds API calls while a
login or refresh is in flight.

States:
    LOGGED_OUT --login()--> LOGGING_IN --ok--> LOGGED_IN
    LOGGED_IN --ensure_valid_token() near expiry--> REFRESHING --ok--> LOGGED_IN
    REFRESHING --401--> LOGGED_OUT --> LOGGING_IN
Failed logins go back to LOGGED_OUT and retry after a flat delay; failed
refreshes stay in REFRESHING (gate closed) and retry after a flat delay.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import httpx

from .config import (
    API_BASE_URL,
    ACCESS_TOKEN_COOKIE,
    CLIENT_ID,
    CSRF_HEADER,
    CSRF_SECRET_COOKIE,
    CSRF_URL,
    INVALID_REQUEST_MARKER,
    LOGIN_RETRY_DELAY,
    LOGIN_STATE,
    PASSWORD_LOGIN_URL,
    REFRESH_TOKEN_COOKIE,
    TOKEN_EXCHANGE_URL,
    TOKEN_REDIRECT_URI,
    TOKEN_REFRESH_PATH,
    TOKEN_REFRESH_RETRY_DELAY,
    TOKEN_REFRESH_THRESHOLD,
    TokenStorage,
)
from .exceptions import AuthenticationError, TokenRejectedError
from .models import Session, SessionState
from .util import (
    decode_token_payload,
    describe_response,
    extract_authorization_code,
    find_cookie,
    format_error,
    sanitize_token,
    token_preview,
)

_LOGGER = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401


class TokenManager:
    """Login, refresh and request gating for one Electrolux account."""

    def __init__(
        self,
        api_key: str,
        username: str,
        password: str,
        country_code: str,
        storage: Optional[TokenStorage] = None,
        base_url: str = API_BASE_URL,
        login_retry_delay: float = LOGIN_RETRY_DELAY,
        refresh_retry_delay: float = TOKEN_REFRESH_RETRY_DELAY,
        refresh_threshold: float = TOKEN_REFRESH_THRESHOLD,
        timeout: float = 30.0,
    ):
        """Initialize the token manager.

        Args:
            api_key: Electrolux developer API key (x-api-key header)
            username: Electrolux account email
            password: Electrolux account password
            country_code: Two letter account country code
            storage: Token persistence; tokens found there are used at startup
            base_url: API host
            login_retry_delay: Seconds before a failed login is retried
            refresh_retry_delay: Seconds before a failed refresh is retried
            refresh_threshold: Refresh when fewer seconds than this remain
            timeout: HTTP timeout in seconds
        """
        self.api_key = api_key
        self.username = username
        self.password = password
        self.country_code = country_code
        self.storage = storage
        self.login_retry_delay = login_retry_delay
        self.refresh_retry_delay = refresh_retry_delay
        self.refresh_threshold = refresh_threshold

        self.session = Session()
        self._settled = asyncio.Event()
        self._settled.set()
        self._logged_in = asyncio.Event()
        self._inflight: Optional["asyncio.Future[bool]"] = None
        self._timers: Set["asyncio.Future[Any]"] = set()
        self._closing = False

        self._load_stored_tokens()

        # Account hosts (CSRF, password login, code exchange)
        self._auth_http = httpx.AsyncClient(timeout=timeout)
        # Developer API host; every request passes the login gate
        self.api = httpx.AsyncClient(
            base_url=base_url,
            headers=self._build_headers(),
            timeout=timeout,
            event_hooks={"request": [self._gate_request]},
        )

    # Session state

    def _load_stored_tokens(self):
        if not self.storage:
            return
        tokens = self.storage.load()
        if not tokens:
            return
        self.session.access_token = tokens.get("accessToken")
        self.session.refresh_token = tokens.get("refreshToken")
        self.session.expires_at = tokens.get("eat")
        self.session.issued_at = tokens.get("iat")
        if self.session.has_token and self.session.refresh_token:
            self._set_state(SessionState.LOGGED_IN)
            _LOGGER.info("Using stored tokens (access token %s)", token_preview(self.session.access_token))

    def _set_state(self, state: SessionState):
        self.session.state = state
        if self.session.is_logging_in:
            self._settled.clear()
        else:
            self._settled.set()
        if self.session.is_logged_in:
            self._logged_in.set()
        else:
            self._logged_in.clear()

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
        }
        if self.session.has_token and self.session.refresh_token:
            headers["Authorization"] = f"Bearer {self.session.access_token}"
        return headers

    def _rebuild_api_client(self):
        """Swap the API client headers for the current bearer token."""
        self.api.headers = self._build_headers()

    async def _gate_request(self, request: httpx.Request):
        """Request hook: hold requests while a login is in flight."""
        if request.url.path != TOKEN_REFRESH_PATH and not self._settled.is_set():
            _LOGGER.debug("Waiting for login to complete...")
            await self._settled.wait()
        # Requests that waited were built with the previous token
        if self.session.access_token:
            request.headers["Authorization"] = f"Bearer {self.session.access_token}"

    async def wait_until_settled(self):
        """Wait until no login or refresh is in flight."""
        await self._settled.wait()

    async def wait_until_logged_in(self):
        """Wait until the session reaches LOGGED_IN, including via scheduled retries."""
        await self._logged_in.wait()

    def _apply_tokens(self, access_token: str, refresh_token: str):
        payload = decode_token_payload(access_token)
        try:
            expires_at = float(payload["exp"])
            issued_at = float(payload.get("iat", time.time()))
        except (KeyError, TypeError, ValueError) as err:
            raise AuthenticationError(f"Access token payload missing timestamps: {err}") from err

        self.session.access_token = access_token
        self.session.refresh_token = refresh_token
        self.session.expires_at = expires_at
        self.session.issued_at = issued_at

        if self.storage:
            self.storage.save(access_token, refresh_token, expires_at, issued_at)

        self._rebuild_api_client()

    def _token_summary(self) -> Dict[str, Any]:
        return {
            "accessToken": token_preview(self.session.access_token),
            "refreshToken": token_preview(self.session.refresh_token),
            "eat": self.session.expires_at,
            "iat": self.session.issued_at,
        }

    # Retry timers

    def _schedule(self, delay: float, callback: Callable[[], Awaitable[Any]]):
        if self._closing:
            return

        async def _later():
            await asyncio.sleep(delay)
            await callback()

        timer = asyncio.ensure_future(_later())
        self._timers.add(timer)
        timer.add_done_callback(self._timers.discard)

    async def _retry_login(self):
        if self.session.is_logged_in:
            return
        await self.login()

    async def _retry_refresh(self):
        await self.refresh()

    def cleanup(self):
        """Cancel pending retries and any login or refresh in flight.

        No new retries are scheduled afterwards.
        """
        self._closing = True
        for timer in list(self._timers):
            timer.cancel()
        self._timers.clear()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    async def aclose(self):
        """Cancel retries and close HTTP clients."""
        inflight = self._inflight
        self.cleanup()
        # Let a cancelled login or refresh unwind before its clients close
        if inflight is not None:
            await asyncio.gather(inflight, return_exceptions=True)
        await self._auth_http.aclose()
        await self.api.aclose()

    # Login

    async def _run_exclusive(self, factory: Callable[[], Awaitable[bool]]) -> bool:
        """Join the login/refresh in flight, or start a new one."""
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(factory())
        return await asyncio.shield(self._inflight)

    async def login(self) -> bool:
        """Run the full login flow.

        Returns:
            True if logged in. Failures are logged and a retry is scheduled.
        """
        return await self._run_exclusive(self._login)

    async def _login(self) -> bool:
        self._set_state(SessionState.LOGGING_IN)
        _LOGGER.info("Attempting to fetch access token...")
        try:
            await self._perform_login()
        except Exception as e:
            self._set_state(SessionState.LOGGED_OUT)
            _LOGGER.error("Error logging in: %s", format_error(e))
            _LOGGER.info("Retrying login in %ss", self.login_retry_delay)
            self._schedule(self.login_retry_delay, self._retry_login)
            return False

        self._set_state(SessionState.LOGGED_IN)
        _LOGGER.info("Logged in, tokens: %s", self._token_summary())
        return True

    async def _fetch_csrf(self) -> Dict[str, str]:
        response = await self._auth_http.get(CSRF_URL, follow_redirects=True)
        response.raise_for_status()

        csrf_token = response.headers.get(CSRF_HEADER)
        if not csrf_token:
            raise AuthenticationError("Failed to retrieve X-CSRF token data")
        csrf_secret = find_cookie(response, CSRF_SECRET_COOKIE) or ""
        return {"token": csrf_token, "secret": csrf_secret}

    def _login_payload(self, flattened: bool = False) -> Dict[str, Any]:
        params = {
            "response_type": "code",
            "client_id": CLIENT_ID,
            "redirect_uri": TOKEN_REDIRECT_URI,
            "state": LOGIN_STATE,
        }
        payload: Dict[str, Any] = {
            "email": self.username,
            "password": self.password,
            "postAuthAction": "authorization",
        }
        if flattened:
            payload.update(params)
        else:
            payload["params"] = params
        payload["countryCode"] = self.country_code
        return payload

    async def _submit_credentials(self, headers: Dict[str, str], flattened: bool) -> str:
        response = await self._auth_http.post(
            PASSWORD_LOGIN_URL,
            json=self._login_payload(flattened),
            headers=headers,
        )
        _LOGGER.debug("Password login response status: %s", response.status_code)
        if response.is_error:
            raise AuthenticationError(f"Password login failed {describe_response(response)}")
        return response.json().get("redirectUrl") or ""

    async def _perform_login(self):
        csrf = await self._fetch_csrf()
        _LOGGER.debug("CSRF token retrieved successfully")

        headers = {
            CSRF_HEADER: csrf["token"],
            "Cookie": f"{CSRF_SECRET_COOKIE}={csrf['secret']}",
        }

        redirect_url = await self._submit_credentials(headers, flattened=False)
        if INVALID_REQUEST_MARKER in redirect_url:
            _LOGGER.warning("Received invalid_request error, trying flattened payload structure...")
            redirect_url = await self._submit_credentials(headers, flattened=True)

        code = extract_authorization_code(redirect_url)
        if not code:
            _LOGGER.error("Failed to extract code from redirectUrl: %s", redirect_url)
            raise AuthenticationError("Authorization code not found in login response")
        _LOGGER.info("Successfully extracted authorization code")

        _LOGGER.debug("Exchanging authorization code for tokens...")
        response = await self._auth_http.post(
            TOKEN_EXCHANGE_URL,
            json={"code": code, "redirectUri": TOKEN_REDIRECT_URI},
        )
        _LOGGER.debug("Token exchange response status: %s", response.status_code)
        response.raise_for_status()

        access_cookie = find_cookie(response, ACCESS_TOKEN_COOKIE)
        refresh_cookie = find_cookie(response, REFRESH_TOKEN_COOKIE)
        if not access_cookie or not refresh_cookie:
            raise AuthenticationError("Failed to retrieve access or refresh token")

        # Signed cookies carry an extra ".signature" segment
        access_token = ".".join(sanitize_token(access_cookie).split(".")[:3])
        refresh_token = sanitize_token(refresh_cookie).split(".")[0]
        self._apply_tokens(access_token, refresh_token)

    # Refresh

    async def ensure_valid_token(self):
        """Make sure a usable access token is available.

        Logs in when there is no token, waits for a login or refresh already
        in flight, and refreshes when the token is close to expiry.
        """
        try:
            if self.session.is_logging_in:
                await self.wait_until_settled()
                return

            if not self.session.has_token:
                await self.login()
                return

            time_left = self.session.expires_at - time.time()
            if time_left <= self.refresh_threshold:
                _LOGGER.info(
                    'Access token is about to expire, time left "%.0f", refreshing tokens...', time_left
                )
                await self.refresh()
            else:
                _LOGGER.debug('Access token is valid, time left "%.0f"', time_left)
        except Exception as e:
            _LOGGER.error("Error ensuring valid token: %s", format_error(e))

    async def refresh(self) -> bool:
        """Exchange the refresh token for a new token pair.

        Returns:
            True if refreshed (or logged in again after a rejected refresh
            token). Other failures are logged and retried after a delay.
        """
        return await self._run_exclusive(self._refresh)

    async def _refresh(self) -> bool:
        self._set_state(SessionState.REFRESHING)
        try:
            response = await self.api.post(
                TOKEN_REFRESH_PATH,
                json={"refreshToken": self.session.refresh_token},
            )
            if response.status_code == HTTP_UNAUTHORIZED:
                raise TokenRejectedError(describe_response(response), HTTP_UNAUTHORIZED)
            response.raise_for_status()

            data = response.json()
            access_token = data.get("accessToken")
            refresh_token = data.get("refreshToken")
            if not access_token or not refresh_token:
                raise AuthenticationError("Access token is undefined")

            self._apply_tokens(access_token, refresh_token)
        except TokenRejectedError as e:
            _LOGGER.warning("Refresh token rejected %s, logging in again", e)
            self.session.clear()
            self._set_state(SessionState.LOGGED_OUT)
            return await self._login()
        except Exception as e:
            _LOGGER.error("Error refreshing access token: %s", format_error(e))
            _LOGGER.info("Retrying token refresh in %ss", self.refresh_retry_delay)
            self._schedule(self.refresh_retry_delay, self._retry_refresh)
            return False

        self._set_state(SessionState.LOGGED_IN)
        _LOGGER.info("Refreshed tokens: %s", self._token_summary())
        return True
