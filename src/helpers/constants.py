from helpers.types.common import URL

# URL's
DEFAULT_BASE_URL = URL("https://esi.evetech.net")
DEFAULT_API_VERSION = URL("latest")
STRUCTURE_ORDERS_URL = URL("/markets/structures")
PAGE_COUNT_HEADER = "X-Pages"

STRUCTURE_MARKETS_SCOPE = "esi-markets.structure_markets.v1"

# ENV VARS
GATHER_ENABLED_ENV_VAR = "STRUCTURE_GATHER_ENABLED"
VENUE_ID_ENV_VAR = "STRUCTURE_GATHER_STRUCTURE_ID"
ACCOUNT_ID_ENV_VAR = "STRUCTURE_GATHER_CHARACTER_ID"
POLL_MINUTES_ENV_VAR = "STRUCTURE_GATHER_POLL_MINUTES"
EXPIRY_WINDOW_ENV_VAR = "STRUCTURE_GATHER_EXPIRY_WINDOW_MINUTES"
BASE_URL_ENV_VAR = "STRUCTURE_GATHER_API_URL"
API_VERSION_ENV_VAR = "STRUCTURE_GATHER_API_VERSION"
REQUEST_TIMEOUT_ENV_VAR = "STRUCTURE_GATHER_REQUEST_TIMEOUT_SECONDS"
COMMIT_TIMEOUT_ENV_VAR = "STRUCTURE_GATHER_COMMIT_TIMEOUT_SECONDS"
MAX_PAGE_WORKERS_ENV_VAR = "STRUCTURE_GATHER_MAX_PAGE_WORKERS"
LOCK_TIMEOUT_ENV_VAR = "STRUCTURE_GATHER_LOCK_TIMEOUT_SECONDS"
DATABASE_URL_ENV_VAR = "STRUCTURE_GATHER_DATABASE_URL"

ACCESS_TOKEN_ENV_VAR = "STRUCTURE_GATHER_ACCESS_TOKEN"
REFRESH_TOKEN_ENV_VAR = "STRUCTURE_GATHER_REFRESH_TOKEN"
TOKEN_SCOPES_ENV_VAR = "STRUCTURE_GATHER_TOKEN_SCOPES"
TOKEN_EXPIRES_AT_ENV_VAR = "STRUCTURE_GATHER_TOKEN_EXPIRES_AT"

# DEFAULTS
DEFAULT_POLL_MINUTES = 10
DEFAULT_EXPIRY_WINDOW_MINUTES = 360
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_COMMIT_TIMEOUT_SECONDS = 120.0
DEFAULT_MAX_PAGE_WORKERS = 8
DEFAULT_LOCK_TIMEOUT_SECONDS = 300.0
DEFAULT_DATABASE_URL = "sqlite:///structure_orders.db"

# Aggregate rows per merge statement
AGGREGATE_CHUNK_SIZE = 500

# Notify on the 3rd consecutive failure, then at most once an hour
NOTIFY_AFTER_FAILURES = 3
NOTIFY_INTERVAL_SECONDS = 60 * 60
