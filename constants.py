import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

HEARTBEAT_INTERVAL = float(os.getenv("HEARTBEAT_INTERVAL", 25))
ROOM_SWEEP_INTERVAL = float(os.getenv("ROOM_SWEEP_INTERVAL", 60))
MAX_ROOM_AGE = float(os.getenv("MAX_ROOM_AGE", 3600))
MAX_MESSAGE_SIZE = int(os.getenv("MAX_MESSAGE_SIZE", 65536))  # 64KB

RATE_LIMIT_WINDOW = float(os.getenv("RATE_LIMIT_WINDOW", 1))
RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", 50))
SOURCE_RATE_WINDOW = float(os.getenv("SOURCE_RATE_WINDOW", 60))
SOURCE_RATE_MAX = int(os.getenv("SOURCE_RATE_MAX", 30))

DEDUP_MAX_SIZE = int(os.getenv("DEDUP_MAX_SIZE", 200))
DEDUP_TTL = float(os.getenv("DEDUP_TTL", 60))

# Comma separated; empty means same-origin only
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]
TRUST_PROXY = os.getenv("TRUST_PROXY", "").lower() in ("1", "true", "yes")

SHUTDOWN_GRACE_PERIOD = float(os.getenv("SHUTDOWN_GRACE_PERIOD", 5))
# Upper bound on a single outbound frame to a slow reader
SEND_TIMEOUT = float(os.getenv("SEND_TIMEOUT", 2))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if os.getenv("DEBUG") else "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

ROOM_CODE_PATTERN = r"^[a-z0-9_-]{1,50}$"
