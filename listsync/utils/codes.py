# listsync/utils/codes.py
# Join codes, zone names and share locators

from __future__ import annotations

import secrets
import string

from listsync.constants import CHAT_SUBSCRIPTION_PREFIX, LOCATOR_PREFIX, ZONE_PREFIX
from listsync.errors import ValidationError


def generate_code(length: int = 6) -> str:
    """Generate a numeric join code. Collisions with live codes are not checked."""
    return ''.join(secrets.choice(string.digits) for _ in range(max(1, length)))


def normalize_code(raw: str | None) -> str:
    """Strip surrounding whitespace; an empty result means 'no code'."""
    return (raw or "").strip()


def zone_name_for(code: str) -> str:
    return f"{ZONE_PREFIX}{code}"


def chat_subscription_id(zone_name: str) -> str:
    return f"{CHAT_SUBSCRIPTION_PREFIX}{zone_name}"


def generate_share_token() -> str:
    """URL-safe random token identifying one share."""
    return secrets.token_urlsafe(16)


def make_locator(zone_name: str, token: str) -> str:
    return f"{LOCATOR_PREFIX}{zone_name}/{token}"


def parse_locator(locator: str) -> tuple[str, str]:
    """Split a locator into (zone_name, token). Raises ValidationError if malformed."""
    if not isinstance(locator, str) or not locator.startswith(LOCATOR_PREFIX):
        raise ValidationError("Malformed share locator", details={"locator": locator})
    zone_name, sep, token = locator[len(LOCATOR_PREFIX):].partition("/")
    if not sep or not zone_name or not token or "/" in token:
        raise ValidationError("Malformed share locator", details={"locator": locator})
    return zone_name, token
