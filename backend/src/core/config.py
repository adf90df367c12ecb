"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # repository root .env
        pathlib.Path.cwd() / ".env",
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "postgresql://localhost/dental_practice_dev"
    )


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = get_database_url()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Practice
CLINIC_NAME = os.getenv("CLINIC_NAME", "Studio Dentistico")
PRACTICE_TIMEZONE = os.getenv("PRACTICE_TIMEZONE", "Europe/Rome")

# Authentication
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

# Email delivery (Resend)
RESEND_API_KEY = os.getenv("RESEND_API_KEY") or os.getenv("RESEND_TOKEN") or ""
RESEND_FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL", "noreply@studio-dentistico.it")

# SMS delivery (ClickSend)
CLICKSEND_USERNAME = os.getenv("CLICKSEND_USERNAME", "")
CLICKSEND_API_KEY = os.getenv("CLICKSEND_API_KEY", "")
CLICKSEND_SENDER = os.getenv("CLICKSEND_SENDER", "")

# Background jobs
CRON_SECRET = os.getenv("CRON_SECRET", "")
SCHEDULER_ENABLED = _get_bool("SCHEDULER_ENABLED", not is_testing)
