import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# =======
# MongoDB
# =======
MONGODB_URI = os.getenv("MONGODB_URI")
# Value shipped in the sample .env; treated the same as "not configured"
MONGODB_URI_PLACEHOLDER = "your_mongodb_connection_string_here"
DATABASE_NAME = os.getenv("DATABASE_NAME", "portfolio")

MONGODB_MAX_POOL_SIZE = _env_int("MONGODB_MAX_POOL_SIZE", 10)
MONGODB_MIN_POOL_SIZE = _env_int("MONGODB_MIN_POOL_SIZE", 1)
MONGODB_SERVER_SELECTION_TIMEOUT_MS = _env_int("MONGODB_SERVER_SELECTION_TIMEOUT_MS", 5000)
MONGODB_CONNECT_TIMEOUT_MS = _env_int("MONGODB_CONNECT_TIMEOUT_MS", 5000)
MONGODB_SOCKET_TIMEOUT_MS = _env_int("MONGODB_SOCKET_TIMEOUT_MS", 30000)

# =====================
# Connection resilience
# =====================
CONNECTION_TIMEOUT_MS = _env_int("CONNECTION_TIMEOUT_MS", 5000)
MAX_CONNECT_ATTEMPTS = _env_int("MAX_CONNECT_ATTEMPTS", 2)
RETRY_BASE_DELAY_MS = _env_int("RETRY_BASE_DELAY_MS", 1000)

# ===
# App
# ===
SEED_DEMO_DATA = _env_bool("SEED_DEMO_DATA", True)
FRONTEND_URL = os.getenv("FRONTEND_URL", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = _env_int("PORT", 8000)


def client_options() -> dict:
    """Keyword arguments handed to the MongoDB client."""
    return {
        "maxPoolSize": MONGODB_MAX_POOL_SIZE,
        "minPoolSize": MONGODB_MIN_POOL_SIZE,
        "serverSelectionTimeoutMS": MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        "connectTimeoutMS": MONGODB_CONNECT_TIMEOUT_MS,
        "socketTimeoutMS": MONGODB_SOCKET_TIMEOUT_MS,
        "retryWrites": True,
        "retryReads": True,
        "tz_aware": True,
    }
