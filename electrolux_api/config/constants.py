"""All constants for the Electrolux API client - single source of truth."""

# === Hosts ===
API_BASE_URL = "https://api.developer.electrolux.one"
ACCOUNT_UI_URL = "https://account.electrolux.one"
ACCOUNT_API_URL = "https://api.account.electrolux.one"

# === Login flow ===
CLIENT_ID = "HeiOpenApi"
LOGIN_STATE = "electrolux-mqtt-client"
CSRF_REDIRECT_URI = "https://developer.electrolux.one/loggedin"
TOKEN_REDIRECT_URI = "https://developer.electrolux.one/generateToken"
CSRF_URL = (
    f"{ACCOUNT_UI_URL}/ui/edp/login"
    f"?response_type=code&client_id={CLIENT_ID}&redirect_uri={CSRF_REDIRECT_URI}"
)
PASSWORD_LOGIN_URL = f"{ACCOUNT_API_URL}/api/v1/password/login"
TOKEN_EXCHANGE_URL = f"{API_BASE_URL}/api/v1/token"

# === API paths ===
TOKEN_REFRESH_PATH = "/api/v1/token/refresh"
APPLIANCES_PATH = "/api/v1/appliances"

# === Cookies / headers ===
CSRF_HEADER = "x-csrf-token"
CSRF_SECRET_COOKIE = "_csrfSecret"
ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"
SIGNED_COOKIE_PREFIX = "s%3A"
INVALID_REQUEST_MARKER = "error=invalid_request"

# === Token lifecycle (seconds) ===
TOKEN_REFRESH_THRESHOLD = 60 * 60
LOGIN_RETRY_DELAY = 5.0
TOKEN_REFRESH_RETRY_DELAY = 5.0

# === Polling / commands (seconds) ===
DEFAULT_REFRESH_INTERVAL = 30
COMMAND_STATE_DELAY = 30.0

# === Cache ===
CACHE_MAX_ITEMS = 1000
CACHE_TTL = 60 * 60 * 24

# === Logging ===
ERROR_RESPONSE_MAX_LENGTH = 200
TOKEN_PREVIEW_LENGTH = 10

# === Storage ===
DEFAULT_TOKEN_FILENAME = "tokens.json"
