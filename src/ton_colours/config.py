"""
Runtime configuration, read once from the environment at startup.

A `.env` file at the repo root is loaded first (local dev); real environment
variables win over it. Invalid values raise RuntimeError.
"""

import logging
import os
import re
import shlex
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, SecretStr

ROOT = Path(__file__).parent.parent.parent

DEFAULT_TON_ENDPOINT = "https://toncenter.com/api/v2/jsonRPC"
DEFAULT_MINT_COMMAND = "npx blueprint run"
DEFAULT_MINT_CWD = "the-path-season-1-nft"
DEFAULT_MINT_RATE_LIMIT = "30/minute"

# Known toncenter endpoints; a matching endpoint needs no --custom flags.
DEFAULT_TONCENTER_ENDPOINTS = {
    "mainnet": "https://toncenter.com/api/v2/jsonRPC",
    "testnet": "https://testnet.toncenter.com/api/v2/jsonRPC",
}

WALLET_VERSION_ALIASES = {
    "v4r1": "v4",
    "v4r2": "v4",
    "v4r3": "v4",
}

SUPPORTED_WALLET_VERSIONS = (
    "v1r1", "v1r2", "v1r3",
    "v2r1", "v2r2",
    "v3r1", "v3r2",
    "v4",
    "v5r1",
)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    port: int = 3000
    ton_endpoint: str = DEFAULT_TON_ENDPOINT
    ton_api_key: Optional[str] = None
    ton_network: str = "mainnet"
    mnemonic: SecretStr
    wallet_version: str = "v4"
    minter_wallet_address: Optional[str] = None
    collection_address: str
    item_deploy_amount_ton: Decimal = Decimal("0.002")
    collection_mint_value_ton: Decimal = Decimal("0.009")
    backend_base_url: str = "http://localhost:3000"
    mint_command: tuple[str, ...] = tuple(shlex.split(DEFAULT_MINT_COMMAND))
    mint_cwd: Path = ROOT / DEFAULT_MINT_CWD
    rpc_timeout: float = 10.0
    mint_rate_limit: str = DEFAULT_MINT_RATE_LIMIT
    log_level: str = "INFO"

    @property
    def mnemonic_words(self) -> list[str]:
        return self.mnemonic.get_secret_value().split()

    @property
    def is_testnet(self) -> bool:
        return self.ton_network != "mainnet"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        raw_port = get("PORT") or "3000"
        try:
            port = int(raw_port)
        except ValueError:
            port = 0
        if port <= 0:
            raise RuntimeError(f'PORT must be a positive integer, received "{raw_port}"')

        ton_endpoint = get("TON_HTTP_ENDPOINT") or DEFAULT_TON_ENDPOINT

        mnemonic = get("MINT_WALLET_MNEMONIC")
        if not mnemonic:
            raise RuntimeError("MINT_WALLET_MNEMONIC is required")
        words = mnemonic.split()
        if len(words) != 24:
            raise RuntimeError("MINT_WALLET_MNEMONIC must contain exactly 24 words")

        collection_address = get("NFT_COLLECTION_ADDRESS")
        if not collection_address:
            raise RuntimeError("NFT_COLLECTION_ADDRESS is required")

        raw_network = (get("TON_NETWORK") or "").lower()
        if raw_network in ("testnet", "mainnet"):
            ton_network = raw_network
        else:
            ton_network = "testnet" if re.search("testnet", ton_endpoint, re.IGNORECASE) else "mainnet"

        item_deploy_amount = _parse_ton_amount(get("NFT_ITEM_DEPLOY_AMOUNT_TON"), "0.002")
        mint_value = _parse_ton_amount(get("NFT_COLLECTION_MINT_VALUE_TON"), "0.009")
        if mint_value < item_deploy_amount:
            raise RuntimeError(
                "NFT_COLLECTION_MINT_VALUE_TON must be greater than or equal to NFT_ITEM_DEPLOY_AMOUNT_TON"
            )

        base_url = get("BACKEND_PUBLIC_BASE_URL") or f"http://localhost:{port}"

        mint_command = tuple(shlex.split(get("NFT_ITEM_MINT_COMMAND") or DEFAULT_MINT_COMMAND))
        mint_cwd = Path(get("NFT_ITEM_MINT_CWD") or ROOT / DEFAULT_MINT_CWD)

        raw_timeout = get("TON_RPC_TIMEOUT") or "10"
        try:
            rpc_timeout = float(raw_timeout)
        except ValueError:
            rpc_timeout = 0.0
        if rpc_timeout <= 0:
            raise RuntimeError(f'TON_RPC_TIMEOUT must be a positive number, received "{raw_timeout}"')

        return cls(
            port=port,
            ton_endpoint=ton_endpoint,
            ton_api_key=get("TON_API_KEY"),
            ton_network=ton_network,
            mnemonic=SecretStr(" ".join(words)),
            wallet_version=normalize_wallet_version(get("MINT_WALLET_VERSION")),
            minter_wallet_address=get("MINT_WALLET_ADDRESS"),
            collection_address=collection_address,
            item_deploy_amount_ton=item_deploy_amount,
            collection_mint_value_ton=mint_value,
            backend_base_url=base_url.rstrip("/"),
            mint_command=mint_command,
            mint_cwd=mint_cwd,
            rpc_timeout=rpc_timeout,
            mint_rate_limit=get("MINT_RATE_LIMIT") or DEFAULT_MINT_RATE_LIMIT,
            log_level=(get("LOG_LEVEL") or "INFO").upper(),
        )


def normalize_wallet_version(value: Optional[str]) -> str:
    if not value:
        return "v4"
    lower = value.strip().lower()
    mapped = WALLET_VERSION_ALIASES.get(lower, lower)
    if mapped not in SUPPORTED_WALLET_VERSIONS:
        raise RuntimeError(
            f'Unsupported TON wallet version "{value}". '
            f"Expected one of: {', '.join(SUPPORTED_WALLET_VERSIONS)}"
        )
    return mapped


def _parse_ton_amount(value: Optional[str], fallback: str) -> Decimal:
    source = value or fallback
    try:
        parsed = Decimal(source)
    except InvalidOperation:
        raise RuntimeError(f'Invalid TON amount: "{source}"') from None
    if not parsed.is_finite() or parsed <= 0:
        raise RuntimeError(f'Invalid TON amount: "{source}"')
    return parsed


def load_settings() -> Settings:
    """Load `.env` (if present) and build Settings from the process environment."""
    env_path = ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    return Settings.from_env()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
