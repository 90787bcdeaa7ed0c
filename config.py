"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ── PostgreSQL ────────────────────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "message_board")
DB_USER: str = os.getenv("DB_USER", "message_board")
DB_PASS: str = os.getenv("DB_PASS", "")

DATABASE_URL: str = os.getenv("DATABASE_URL") or (
    f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

# ── Connection lifecycle ──────────────────────────────────
# "singleton": one pool per process, reused by every request.
# "ephemeral": a fresh connection per operation, closed when it ends.
DB_CONNECTION_POLICY: str = os.getenv("DB_CONNECTION_POLICY", "singleton").strip().lower()
DB_POOL_MIN: int = int(os.getenv("DB_POOL_MIN", "1"))
DB_POOL_MAX: int = int(os.getenv("DB_POOL_MAX", "5"))
DB_CONNECT_TIMEOUT: int = int(os.getenv("DB_CONNECT_TIMEOUT", "10"))
DB_DISPOSE_ON_SHUTDOWN: bool = _env_bool("DB_DISPOSE_ON_SHUTDOWN")

# ── Messages ──────────────────────────────────────────────
MESSAGE_LIST_LIMIT: int = int(os.getenv("MESSAGE_LIST_LIMIT", "50"))
MESSAGE_MAX_LENGTH: int = int(os.getenv("MESSAGE_MAX_LENGTH", "255"))

# ── HTTP ──────────────────────────────────────────────────
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
