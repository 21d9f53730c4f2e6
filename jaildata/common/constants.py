"""Application constants."""

USER_AGENT = "Mozilla/5.0 (compatible; JailData/1.0)"
DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}

UNSET_API_ID = 0
DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_PAGES = 500
BATCH_WRITE_LIMIT = 25
DEFAULT_QUERY_LIMIT = 100
DEFAULT_SURNAME_LIMIT = 50

INMATE_KEY_PREFIX = "INMATE"
FACILITY_KEY_PREFIX = "FACILITY"
KEY_ATTRIBUTES = ("PK", "SK", "GSI1PK", "GSI1SK")

XSRF_COOKIE_NAME = "XSRF-TOKEN"
XSRF_HEADER_NAME = "X-XSRF-TOKEN"
WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "facility",
    "event",
    "status",
    "severity",
    "category",
    "page",
    "records",
    "duration_ms",
    "error_code",
    "message",
)
