"""Application configuration and constants."""
import logging
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float_env(name: str, default: float) -> float:
    """Parse float from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DB_DIR / 'learnhub.db'}")
if DATABASE_URL.startswith("sqlite:///") and "DATABASE_URL" not in os.environ:
    DB_DIR.mkdir(parents=True, exist_ok=True)

# Authentication
SECRET_KEY = os.environ.get(
    "SECRET_KEY",
    "CHANGE_ME_IN_PRODUCTION_USE_openssl_rand_hex_32"
)
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _parse_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60)
SESSION_EXTEND_MINUTES = _parse_int_env("SESSION_EXTEND_MINUTES", 60)

# Grading
DEFAULT_PASSING_RATIO = _parse_float_env("DEFAULT_PASSING_RATIO", 0.5)

# Seconds between sweeps for expired, unsubmitted attempts (0 disables)
EXPIRY_SWEEP_INTERVAL_SECONDS = _parse_int_env("EXPIRY_SWEEP_INTERVAL_SECONDS", 60)

# Logging and messages
LOG_LEVEL = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
DEFAULT_LOCALE = os.environ.get("DEFAULT_LOCALE", "en")
