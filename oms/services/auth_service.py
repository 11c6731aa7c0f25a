"""Authentication service: single shared staff password and shared secrets"""
import secrets
from typing import Optional

from oms.config import get_settings


class AuthNotConfigured(Exception):
    """APP_PASSWORD is not set"""


def _matches(supplied: Optional[str], expected: str) -> bool:
    if not supplied or not expected:
        return False
    return secrets.compare_digest(supplied.encode(), expected.encode())


def verify_password(password: Optional[str]) -> bool:
    """Compare against APP_PASSWORD in constant time."""
    expected = get_settings().app_password
    if not expected:
        raise AuthNotConfigured("APP_PASSWORD environment variable is not set")
    return _matches(password, expected)


def verify_cron_authorization(header: Optional[str]) -> bool:
    """Authorization header must be exactly 'Bearer <CRON_SECRET>'."""
    secret = get_settings().cron_secret
    if not secret or not header:
        return False
    return _matches(header, f"Bearer {secret}")


def verify_admin_secret(value: Optional[str]) -> bool:
    return _matches(value, get_settings().admin_secret)


def is_authenticated_cookie(value: Optional[str]) -> bool:
    return value == "true"
