"""
Runtime configuration - environment driven, optionally seeded from a .env file.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_PATH = "./data/records.db"

# Schema versioning
DEFAULT_SCHEMA_VERSION = 1
KNOWN_FIELD_TYPES = ("string", "number", "integer", "boolean", "object", "array", "datetime", "null")

# Store round-trip limits
STORE_BUSY_TIMEOUT_SEC = 5.0

# Version string
VERSION = "1.0.0"


def get_db_path() -> str:
    """Database path, re-read so tests and tools can point at another file."""
    return os.getenv("DB_PATH", DEFAULT_DB_PATH)


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def schema_validation_strict():
    """Check if field type tags are restricted to KNOWN_FIELD_TYPES."""
    return os.getenv("SCHEMA_VALIDATION_STRICT", "false").lower() == "true"


def log_field_values_enabled():
    """Check if patched values may appear in the audit log."""
    return os.getenv("LOG_FIELD_VALUES", "false").lower() == "true"


def get_default_schema_version() -> int:
    """Version stamped on new records when their table has no active schema."""
    return int(os.getenv("DEFAULT_SCHEMA_VERSION", str(DEFAULT_SCHEMA_VERSION)))


def get_busy_timeout() -> float:
    """SQLite busy timeout in seconds used when the caller carries no deadline."""
    return float(os.getenv("STORE_BUSY_TIMEOUT_SEC", str(STORE_BUSY_TIMEOUT_SEC)))


def ensure_db_directory():
    """Ensure the database directory exists."""
    Path(get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate store and schema configuration and return any issues."""
    issues = []

    try:
        if get_default_schema_version() < 1:
            issues.append("DEFAULT_SCHEMA_VERSION must be >= 1")
    except ValueError:
        issues.append(f"Invalid DEFAULT_SCHEMA_VERSION: {os.getenv('DEFAULT_SCHEMA_VERSION')}")

    try:
        if get_busy_timeout() <= 0:
            issues.append("STORE_BUSY_TIMEOUT_SEC must be > 0")
    except ValueError:
        issues.append(f"Invalid STORE_BUSY_TIMEOUT_SEC: {os.getenv('STORE_BUSY_TIMEOUT_SEC')}")

    if not get_db_path().strip():
        issues.append("DB_PATH must not be empty")

    return issues
