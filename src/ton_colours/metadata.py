"""
Metadata URIs, metadata documents and colour swatches.

Everything a marketplace needs to render an item is packed into the query
string of its metadata URI when it is minted. The `/metadata` route decodes
it again with `parse_metadata_query`, so no record of past mints is kept.
"""

from datetime import datetime, timezone
from typing import Mapping, Optional, Union
from urllib.parse import urlencode

from .validation import assert_ton_address, normalize_hex_color

SVG_SIZE = 512

DESCRIPTION = "A unique on-chain colour minted on The Open Network for Telegram mini app users."
EXTERNAL_URL = "https://ton.org/"


def build_metadata_uri(
    base_url: str,
    item_index: Union[int, str],
    color: str,
    wallet_address: Optional[str] = None,
    telegram_user_id: Optional[int] = None,
    minted_at: Optional[str] = None,
) -> str:
    params = {"color": normalize_hex_color(color)[1:]}
    if wallet_address:
        params["wallet"] = wallet_address
    if telegram_user_id is not None:
        params["tg"] = str(telegram_user_id)
    if minted_at:
        params["mintedAt"] = str(minted_at)
    return f"{base_url.rstrip('/')}/metadata/{item_index}?{urlencode(params)}"


def parse_metadata_query(params: Mapping[str, str]) -> dict:
    """Inverse of `build_metadata_uri`'s query string. Raises ValueError on bad input."""
    color = params.get("color")
    if not color:
        raise ValueError("color query parameter is required")
    color = normalize_hex_color("#" + str(color).lstrip("#"))

    wallet = params.get("wallet")
    if wallet:
        wallet = assert_ton_address(wallet, "wallet")

    telegram_user_id = None
    tg = params.get("tg")
    if tg is not None:
        try:
            telegram_user_id = int(tg)
        except ValueError:
            raise ValueError("tg must be numeric") from None

    return {
        "color": color,
        "wallet": wallet or None,
        "telegram_user_id": telegram_user_id,
        "minted_at": params.get("mintedAt") or None,
    }


def _iso_timestamp(value: str) -> str:
    """Normalise to `YYYY-MM-DDTHH:MM:SS.mmmZ`; unparseable input is returned unchanged."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_metadata(
    base_url: str,
    item_index: Union[int, str],
    color: str,
    wallet_address: Optional[str] = None,
    telegram_user_id: Optional[int] = None,
    minted_at: Optional[str] = None,
) -> dict:
    color = normalize_hex_color(color)
    hex_digits = color[1:]
    image_url = f"{base_url.rstrip('/')}/image/{item_index}?{urlencode({'color': hex_digits})}"

    attributes = [{"trait_type": "Color", "value": color}]
    if telegram_user_id:
        attributes.append({"trait_type": "Telegram User ID", "value": str(telegram_user_id)})
    if wallet_address:
        attributes.append({"trait_type": "Wallet Address", "value": wallet_address})
    if minted_at:
        attributes.append({"trait_type": "Minted At", "value": _iso_timestamp(minted_at)})

    return {
        "name": f"TON Colour {color}",
        "description": DESCRIPTION,
        "image": image_url,
        "attributes": attributes,
        "background_color": hex_digits,
        "external_url": EXTERNAL_URL,
        "properties": {
            "color": color,
            "walletAddress": wallet_address,
            "telegramUserId": telegram_user_id,
        },
    }


def build_color_svg(color: str) -> str:
    color = normalize_hex_color(color)
    return "\n".join([
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{SVG_SIZE}" height="{SVG_SIZE}" '
        f'viewBox="0 0 {SVG_SIZE} {SVG_SIZE}" shape-rendering="geometricPrecision">',
        f'  <rect width="{SVG_SIZE}" height="{SVG_SIZE}" fill="{color}" />',
        "</svg>",
    ])
