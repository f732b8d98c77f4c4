"""Shared constants for ScriptGuard.

Timeouts, identity strings and header policy used across modules live here.
No magic values in other modules — import from here.
Config defaults (scriptguard/config.py) are seeded from these values.
"""

# ─── Upstream timeouts ────────────────────────────────────────────────────────

# Upper bound for the whole document fetch (connect + transfer) on GET /.
# The rewrite needs the complete body, so there is no partial-body recovery.
DOCUMENT_FETCH_TIMEOUT_S: float = 10.0

# Upper bound for obtaining the upstream response on GET /proxy.
# Also used as the per-read timeout while the body is relayed.
RELAY_FETCH_TIMEOUT_S: float = 15.0

# ─── Shared httpx client pool ─────────────────────────────────────────────────

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
MAX_REDIRECTS: int = 5

# ─── Upstream identity ────────────────────────────────────────────────────────

# Desktop browser identity presented when fetching documents for rewrite.
DOCUMENT_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

# Relay fallback when the caller sent no User-Agent of its own.
RELAY_DEFAULT_USER_AGENT: str = "Mozilla/5.0"

# ─── Relay header policy ──────────────────────────────────────────────────────

# Upstream response headers eligible for propagation to the caller.
# Anything not listed here (set-cookie, content-encoding, ...) is dropped.
FORWARDED_RESPONSE_HEADERS: tuple[str, ...] = (
    "content-type",
    "content-length",
    "accept-ranges",
    "content-disposition",
    "cache-control",
)

# ─── CORS ─────────────────────────────────────────────────────────────────────

CORS_ALLOW_ORIGIN: str = "*"
CORS_ALLOW_METHODS: str = "GET, POST, PUT, DELETE, OPTIONS"
CORS_RELAY_ALLOW_METHODS: str = "GET, OPTIONS"
CORS_ALLOW_HEADERS: str = "Origin, X-Requested-With, Content-Type, Accept, Authorization"

# ─── Script filtering ─────────────────────────────────────────────────────────

# Signature of a known obfuscated ad loader. Inline scripts containing it are
# always removed, independent of the configurable block list.
INLINE_LOADER_SIGNATURE: str = "function(w,a)"

# ─── Service defaults ─────────────────────────────────────────────────────────

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 3000

# Example shown to callers that omit or malform ?url=
USAGE_EXAMPLE: str = "?url=https://example.com"

# Rewrite steps slower than this are logged at WARNING.
SLOW_REWRITE_MS: float = 250.0
