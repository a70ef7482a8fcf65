"""Configuration constants and token persistence for the Electrolux API client."""

from .constants import (
    # Hosts
    API_BASE_URL,
    ACCOUNT_UI_URL,
    ACCOUNT_API_URL,
    # Login flow
    CLIENT_ID,
    LOGIN_STATE,
    CSRF_REDIRECT_URI,
    TOKEN_REDIRECT_URI,
    CSRF_URL,
    PASSWORD_LOGIN_URL,
    TOKEN_EXCHANGE_URL,
    # API paths
    TOKEN_REFRESH_PATH,
    APPLIANCES_PATH,
    # Cookies / headers
    CSRF_HEADER,
    CSRF_SECRET_COOKIE,
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    SIGNED_COOKIE_PREFIX,
    INVALID_REQUEST_MARKER,
    # Token lifecycle
    TOKEN_REFRESH_THRESHOLD,
    LOGIN_RETRY_DELAY,
    TOKEN_REFRESH_RETRY_DELAY,
    # Polling / commands
    DEFAULT_REFRESH_INTERVAL,
    COMMAND_STATE_DELAY,
    # Cache
    CACHE_MAX_ITEMS,
    CACHE_TTL,
    # Logging
    ERROR_RESPONSE_MAX_LENGTH,
    TOKEN_PREVIEW_LENGTH,
    # Storage
    DEFAULT_TOKEN_FILENAME,
)

# Token storage
from .storage import TokenStorage


__all__ = [
    "API_BASE_URL",
    "ACCOUNT_UI_URL",
    "ACCOUNT_API_URL",
    "CLIENT_ID",
    "LOGIN_STATE",
    "CSRF_REDIRECT_URI",
    "TOKEN_REDIRECT_URI",
    "CSRF_URL",
    "PASSWORD_LOGIN_URL",
    "TOKEN_EXCHANGE_URL",
    "TOKEN_REFRESH_PATH",
    "APPLIANCES_PATH",
    "CSRF_HEADER",
    "CSRF_SECRET_COOKIE",
    "ACCESS_TOKEN_COOKIE",
    "REFRESH_TOKEN_COOKIE",
    "SIGNED_COOKIE_PREFIX",
    "INVALID_REQUEST_MARKER",
    "TOKEN_REFRESH_THRESHOLD",
    "LOGIN_RETRY_DELAY",
    "TOKEN_REFRESH_RETRY_DELAY",
    "DEFAULT_REFRESH_INTERVAL",
    "COMMAND_STATE_DELAY",
    "CACHE_MAX_ITEMS",
    "CACHE_TTL",
    "ERROR_RESPONSE_MAX_LENGTH",
    "TOKEN_PREVIEW_LENGTH",
    "DEFAULT_TOKEN_FILENAME",
    "TokenStorage",
]
