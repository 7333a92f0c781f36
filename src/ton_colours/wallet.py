"""
Minter wallet status, read from toncenter's JSON-RPC v2 endpoint.

Nothing here is cached; every mint reads a fresh balance.
"""

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Optional, Sequence

from pytoniq.contract.wallets.wallet import WALLET_V3_R2_CODE, WALLET_V4_R2_CODE
from pytoniq_core import Address
from pytoniq_core.boc import Builder, Cell
from pytoniq_core.crypto.keys import mnemonic_to_private_key
from pytoniq_core.tlb.account import StateInit

from .config import Settings
from .errors import AddressFormatError, ToncenterError, WalletStatusUnavailable
from .models import WalletStatus

logger = logging.getLogger(__name__)


def format_wallet_address(address, *, bounceable: bool = True, test_only: bool = False) -> str:
    """Encode `address` (str or pytoniq_core.Address) as a url-safe user-friendly string."""
    try:
        if not isinstance(address, Address):
            address = Address(address)
        return address.to_str(
            is_user_friendly=True,
            is_url_safe=True,
            is_bounceable=bounceable,
            is_test_only=test_only,
        )
    except Exception as e:
        raise AddressFormatError(
            "Failed to format minter wallet address",
            details={"cause": str(e)},
        ) from e


# ── Minter identity ───────────────────────────────────────────────────────────
# Standard subwallet id (698983191 + workchain) and an empty plugin dict for v4,
# matching what the deploy script builds from the same mnemonic.

DEFAULT_WALLET_ID = 698983191
WALLET_CODES = {
    "v3r2": WALLET_V3_R2_CODE,
    "v4": WALLET_V4_R2_CODE,
}


def _wallet_data(version: str, public_key: bytes, wc: int) -> Cell:
    builder = Builder()
    builder.store_uint(0, 32)
    builder.store_uint(DEFAULT_WALLET_ID + wc, 32)
    builder.store_bytes(public_key)
    if version == "v4":
        builder.store_uint(0, 1)
    return builder.end_cell()


def derive_wallet_address(mnemonic_words: Sequence[str], wallet_version: str, wc: int = 0) -> Address:
    """Address of the wallet contract the deploy script signs with.

    Only versions in `WALLET_CODES` can be derived; others raise KeyError.
    """
    code = WALLET_CODES[wallet_version]
    public_key, _ = mnemonic_to_private_key(list(mnemonic_words))
    state_init = StateInit(code=code, data=_wallet_data(wallet_version, public_key, wc))
    return Address((wc, state_init.serialize().hash))


def resolve_minter_address(settings: Settings) -> str:
    """Pick the address the precheck should query, once at startup.

    Derivable wallets use the mnemonic's own address, and a configured
    MINT_WALLET_ADDRESS must agree with it. Other versions need the setting.
    """
    configured = settings.minter_wallet_address
    if settings.wallet_version not in WALLET_CODES:
        if not configured:
            raise RuntimeError(
                f"MINT_WALLET_ADDRESS is required for wallet version {settings.wallet_version}"
            )
        return configured

    try:
        derived = derive_wallet_address(settings.mnemonic_words, settings.wallet_version)
    except Exception as e:
        raise RuntimeError(f"Could not derive the minter wallet from MINT_WALLET_MNEMONIC: {e}") from e
    derived_str = derived.to_str(is_user_friendly=True, is_url_safe=True, is_bounceable=True)

    if configured:
        try:
            expected = Address(configured)
        except Exception as e:
            raise RuntimeError(f"MINT_WALLET_ADDRESS is not a valid TON address: {e}") from e
        if (expected.wc, expected.hash_part) != (derived.wc, derived.hash_part):
            raise RuntimeError(
                f"MINT_WALLET_ADDRESS {configured} does not match the {settings.wallet_version} "
                f"wallet derived from MINT_WALLET_MNEMONIC ({derived_str})"
            )

    logger.info("Minter wallet %s (%s)", derived_str, settings.wallet_version)
    return derived_str


# ── RPC ───────────────────────────────────────────────────────────────────────

class ToncenterClient:
    """Minimal toncenter JSON-RPC client. Only read-only calls."""

    def __init__(self, endpoint: str, api_key: Optional[str] = None, timeout: float = 10.0):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout

    def _call(self, method: str, params: dict) -> dict:
        payload = json.dumps({
            "id": 1,
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
        }).encode()
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        req = urllib.request.Request(self.endpoint, data=payload, headers=headers)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = json.loads(resp.read())
        except urllib.error.HTTPError as e:
            raise ToncenterError(f"{method} failed with HTTP {e.code}") from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise ToncenterError(f"{method} failed: {e}") from e
        except json.JSONDecodeError as e:
            raise ToncenterError(f"{method} returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise ToncenterError(f"{method} returned an unexpected body")
        if "error" in body or body.get("ok") is False:
            raise ToncenterError(f"{method} error: {body.get('error') or body.get('result')}")
        return body.get("result") or {}

    async def get_address_information(self, address: str) -> dict:
        return await asyncio.to_thread(self._call, "getAddressInformation", {"address": address})


# ── Resolver ──────────────────────────────────────────────────────────────────

class WalletStatusResolver:
    def __init__(self, settings: Settings, client=None, address: Optional[str] = None):
        self.settings = settings
        self.address = address or resolve_minter_address(settings)
        self.client = client or ToncenterClient(
            settings.ton_endpoint,
            api_key=settings.ton_api_key,
            timeout=settings.rpc_timeout,
        )

    async def resolve(self) -> WalletStatus:
        test_only = self.settings.is_testnet
        friendly = format_wallet_address(
            self.address, bounceable=True, test_only=test_only
        )
        non_bounceable = format_wallet_address(
            self.address, bounceable=False, test_only=test_only
        )

        try:
            info = await self.client.get_address_information(friendly)
        except Exception as e:
            logger.error("Minter wallet status query failed for %s: %s", friendly, e)
            raise WalletStatusUnavailable(
                "Failed to query minter wallet status from TON RPC",
                details={
                    "cause": str(e),
                    "walletAddress": friendly,
                    "walletAddressNonBounceable": non_bounceable,
                },
            ) from e

        info = info or {}
        try:
            balance_nano = int(str(info.get("balance") or 0))
        except ValueError as e:
            raise WalletStatusUnavailable(
                "TON RPC returned a non-integer balance",
                details={"balance": info.get("balance"), "walletAddress": friendly},
            ) from e

        return WalletStatus(
            friendly_address=friendly,
            non_bounceable_address=non_bounceable,
            balance_nano=balance_nano,
            state=info.get("state") or "unknown",
        )
