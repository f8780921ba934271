import secrets
from datetime import datetime, timedelta

from utils.clock import utcnow


def generate_token() -> str:
    """Opaque, URL-safe single-use token for verification and reset links."""
    return secrets.token_urlsafe(32)


def get_token_expiry_time(minutes: int) -> datetime:
    return utcnow() + timedelta(minutes=minutes)
