"""Project-wide constants (protocol defaults, timeouts, size thresholds)."""

DEFAULT_TRACKER_PORT: int = 7001
DEFAULT_HTTP_PORT: int = 7500

REPLICA_TIMEOUT_SECONDS: float = 5.0
TRACKER_TIMEOUT_SECONDS: float = 3.0
DEAD_HOST_RETRY_SECONDS: float = 5.0

COPY_CHUNK_SIZE_BYTES: int = 16 * 1024
BIGFILE_THRESHOLD_BYTES: int = 64 * 1024  # path sources above this are sent whole

LIST_KEYS_LIMIT: int = 1000

ALT_ZONE: str = "alt"
