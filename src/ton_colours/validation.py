"""Input validators and colour helpers shared by the web layer and the mint core."""

import re
from typing import Any

from pytoniq_core import Address

HEX_COLOR_RE = re.compile(r"^#?[0-9a-fA-F]{6}$")
MAX_SAFE_INTEGER = 2**53 - 1


# ── Colour ────────────────────────────────────────────────────────────────────

def normalize_hex_color(value: Any) -> str:
    """Return `value` as upper-case `#RRGGBB`. Accepts an optional leading `#`."""
    if not isinstance(value, str):
        raise ValueError("Color value must be a string")
    trimmed = value.strip()
    if not HEX_COLOR_RE.match(trimmed):
        raise ValueError(f'Invalid hex color: "{value}"')
    return "#" + trimmed.lstrip("#").upper()


# ── Request fields ────────────────────────────────────────────────────────────

def assert_ton_address(value: Any, field_name: str = "walletAddress") -> str:
    """Parse a TON address and return its bounceable, url-safe user-friendly form."""
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    try:
        address = Address(value.strip())
        return address.to_str(is_user_friendly=True, is_url_safe=True, is_bounceable=True)
    except Exception:
        raise ValueError(f"{field_name} must be a valid TON address") from None


def assert_telegram_user_id(value: Any) -> int:
    if value is None or value == "":
        raise ValueError("telegramUserId is required")
    if isinstance(value, bool):
        raise ValueError("telegramUserId must be a safe integer")
    if isinstance(value, str):
        if not re.fullmatch(r"\s*\d+\s*", value):
            raise ValueError("telegramUserId must be a safe integer")
        value = int(value)
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError("telegramUserId must be a safe integer")
        value = int(value)
    elif not isinstance(value, int):
        raise ValueError("telegramUserId must be a safe integer")
    if value < 0 or value > MAX_SAFE_INTEGER:
        raise ValueError("telegramUserId must be a non-negative safe integer")
    return value


def assert_hex_color(value: Any) -> str:
    return normalize_hex_color(value)
