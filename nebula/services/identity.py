"""
Ticket identity generation.

Ticket numbers are for humans. QR codes are bearer credentials, so they come
from the CSPRNG and share nothing with the ticket number. Uniqueness is not
checked here; the store's unique constraints reject collisions.
"""
import re
import secrets
import string
import time
from typing import Optional

from nebula.config import get_settings

QR_PREFIX = "NEBULA"
QR_RANDOM_LENGTH = 9
TICKET_SUFFIX_LENGTH = 4

_BASE36_UPPER = string.digits + string.ascii_uppercase
_ALPHANUMERIC = string.ascii_letters + string.digits
_QR_PATTERN = re.compile(rf"^{QR_PREFIX}-\d+-[A-Za-z0-9]+$")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _random_chars(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_ticket_number(now_ms: Optional[int] = None) -> str:
    """Prefix + last 8 digits of the ms timestamp + 4 base-36 characters, e.g. NBL-12345678ABCD."""
    timestamp = str(now_ms if now_ms is not None else _now_ms())[-8:]
    prefix = get_settings().ticket_number_prefix
    return f"{prefix}{timestamp}{_random_chars(_BASE36_UPPER, TICKET_SUFFIX_LENGTH)}"


def generate_qr_code(now_ms: Optional[int] = None) -> str:
    timestamp = now_ms if now_ms is not None else _now_ms()
    return f"{QR_PREFIX}-{timestamp}-{_random_chars(_ALPHANUMERIC, QR_RANDOM_LENGTH)}"


def is_valid_qr_format(value: str) -> bool:
    return bool(_QR_PATTERN.match(value or ""))
