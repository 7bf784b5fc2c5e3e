"""
Application Configuration

Loads configuration from environment variables with sensible defaults.
All hardcoded paths and settings should be defined here.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists (override=True means .env takes precedence over system env vars)
load_dotenv(override=True)

# =============================================================================
# BASE PATHS
# =============================================================================

# Base directory (where this config file is located)
BASE_DIR = Path(__file__).resolve().parent

# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medease.db")

# =============================================================================
# AUTHENTICATION
# =============================================================================

SECRET_KEY = os.getenv("SECRET_KEY", "medease-secret-key-change-this-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))  # 24 hours

# Refresh tokens are signed with a separate key
REFRESH_SECRET_KEY = os.getenv("REFRESH_SECRET_KEY", "medease-refresh-secret-change-this-in-production")
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# Credential endpoints: attempts allowed per client within the window
AUTH_RATE_LIMIT_ATTEMPTS = int(os.getenv("AUTH_RATE_LIMIT_ATTEMPTS", "5"))
AUTH_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("AUTH_RATE_LIMIT_WINDOW_SECONDS", "900"))  # 15 minutes

# =============================================================================
# APPLICATION SETTINGS
# =============================================================================

DEBUG = os.getenv("DEBUG", "True").lower() in ("true", "1", "yes")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))

# =============================================================================
# BOOKING RULES
# =============================================================================

# Minimum spacing between two active bookings for the same doctor
SLOT_CONFLICT_WINDOW_MINUTES = int(os.getenv("SLOT_CONFLICT_WINDOW_MINUTES", "30"))

# Doctor directory paging
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))

# =============================================================================
# CORS SETTINGS
# =============================================================================

# Comma-separated list of allowed origins, or "*" for all
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
CORS_ALLOW_CREDENTIALS = os.getenv("CORS_ALLOW_CREDENTIALS", "True").lower() in ("true", "1", "yes")

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")    # "json" or "text"
LOG_OUTPUT = os.getenv("LOG_OUTPUT", "stdout")  # "stdout", "file", "all"
LOG_FILE = os.getenv("LOG_FILE", str(BASE_DIR / "logs" / "medease.json.log"))


# =============================================================================
# HELPER FUNCTION
# =============================================================================

def get_config_summary():
    """Returns a summary of current configuration (for debugging)."""
    return {
        "database_url": DATABASE_URL[:20] + "..." if len(DATABASE_URL) > 20 else DATABASE_URL,
        "debug": DEBUG,
        "host": HOST,
        "port": PORT,
        "token_expire_minutes": ACCESS_TOKEN_EXPIRE_MINUTES,
        "refresh_token_expire_days": REFRESH_TOKEN_EXPIRE_DAYS,
        "auth_rate_limit": f"{AUTH_RATE_LIMIT_ATTEMPTS}/{AUTH_RATE_LIMIT_WINDOW_SECONDS}s",
        "slot_conflict_window_minutes": SLOT_CONFLICT_WINDOW_MINUTES,
        "log_level": LOG_LEVEL,
        "log_output": LOG_OUTPUT,
    }
