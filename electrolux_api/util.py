"""Helpers shared by the session and client modules."""

import base64
import json
import re
from typing import Any, Dict, Optional

import httpx

from .config import ERROR_RESPONSE_MAX_LENGTH, SIGNED_COOKIE_PREFIX, TOKEN_PREVIEW_LENGTH
from .exceptions import ApiError, AuthenticationError

_CODE_PATTERN = re.compile(r"code=([^&]*)")


def describe_response(response: httpx.Response) -> str:
    """Summarize an error response as 'status reason [METHOD /path] - body'."""
    status = f"{response.status_code} {response.reason_phrase}".strip()
    formatted = f"({status})"
    try:
        request = response.request
        formatted += f" [{request.method} {request.url.path}]"
    except RuntimeError:
        pass

    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, (dict, list)):
        body = json.dumps(data)
        if len(body) < ERROR_RESPONSE_MAX_LENGTH:
            formatted += f" - {body}"
    return formatted


def format_error(error: BaseException) -> str:
    """Format an exception for a single log line."""
    if isinstance(error, httpx.HTTPStatusError):
        return f"Request failed {describe_response(error.response)}"
    if isinstance(error, httpx.RequestError):
        message = str(error) or type(error).__name__
        try:
            request = error.request
            return f"{message} [{request.method} {request.url.path}]"
        except RuntimeError:
            return message
    if isinstance(error, ApiError) and error.status_code:
        return f"{error} (HTTP {error.status_code})"
    return str(error) or type(error).__name__


def find_cookie(response: httpx.Response, name: str) -> Optional[str]:
    """Return the value of a Set-Cookie header by cookie name."""
    prefix = f"{name}="
    for header in response.headers.get_list("set-cookie"):
        if header.startswith(prefix):
            return header.split(";", 1)[0][len(prefix):]
    return None


def sanitize_token(token: str) -> str:
    """Strip the signed-cookie marker from a cookie value."""
    return token.replace(SIGNED_COOKIE_PREFIX, "")


def extract_authorization_code(redirect_url: Optional[str]) -> Optional[str]:
    """Pull the OAuth code out of a login redirect URL."""
    if not redirect_url:
        return None
    match = _CODE_PATTERN.search(redirect_url)
    if not match or not match.group(1):
        return None
    return match.group(1)


def decode_token_payload(token: str) -> Dict[str, Any]:
    """Decode the payload segment of a JWT.

    The signature is NOT verified: the token comes straight from the
    Electrolux token endpoint over TLS and is only read for its timestamps.

    Raises:
        AuthenticationError: If the token is not a three-part JWT or the
            payload is not JSON.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise AuthenticationError("Invalid access token format: expected 3 parts")

    payload_encoded = parts[1]
    padding = len(payload_encoded) % 4
    if padding:
        payload_encoded += "=" * (4 - padding)

    try:
        payload = json.loads(base64.urlsafe_b64decode(payload_encoded).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as err:
        raise AuthenticationError(f"Failed to decode access token payload: {err}") from err

    if not isinstance(payload, dict):
        raise AuthenticationError("Access token payload is not an object")
    return payload


def token_preview(token: Optional[str]) -> Optional[str]:
    """Shorten a token for logging."""
    if not token:
        return token
    n = TOKEN_PREVIEW_LENGTH
    return f"{token[:n]}...token length {len(token)}...{token[-n:]}"
