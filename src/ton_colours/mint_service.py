"""
mint_color_nft: the one entry point the web layer calls.

Each request becomes one task on the MintQueue. Inside the task:
preflight (advisory) -> deployNftItem -> MINT_RESULT payload -> metadata URI.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from .config import Settings
from .deployer import DeployRunner
from .errors import InvalidResultPayload
from .metadata import build_metadata_uri
from .mint_queue import MintQueue
from .models import MintOutcome, MintRequest, PreconditionReport
from .preconditions import check_wallet
from .result_protocol import extract_item_index
from .validation import normalize_hex_color
from .wallet import WalletStatusResolver

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MintService:
    def __init__(
        self,
        settings: Settings,
        queue: Optional[MintQueue] = None,
        resolver: Optional[WalletStatusResolver] = None,
        deployer: Optional[DeployRunner] = None,
    ):
        self.settings = settings
        self.queue = queue or MintQueue()
        self.resolver = resolver or WalletStatusResolver(settings)
        self.deployer = deployer or DeployRunner(settings)

    async def ensure_minter_wallet_ready(self) -> PreconditionReport:
        status = await self.resolver.resolve()
        return check_wallet(status, self.settings.collection_mint_value_ton)

    async def mint_color_nft(self, wallet_address: str, telegram_user_id: int, color: str) -> MintOutcome:
        """Mint one colour NFT. Callers must validate their inputs first.

        Raises a MintError subclass on any failure; a partial mint is never
        returned as a success.
        """
        request = MintRequest(
            wallet_address=wallet_address,
            telegram_user_id=telegram_user_id,
            color=normalize_hex_color(color),
        )
        return await self.queue.submit(lambda: self._mint(request))

    async def _mint(self, request: MintRequest) -> MintOutcome:
        await self.ensure_minter_wallet_ready()

        run = await self.deployer.run(request)
        result = run.result
        try:
            item_index = extract_item_index(result)
        except InvalidResultPayload as e:
            e.stdout, e.stderr = run.stdout, run.stderr
            raise

        minted_at = result.get("mintedAt")
        if not isinstance(minted_at, str):
            minted_at = utc_now_iso()

        nft_address = result.get("nftAddress")
        outcome = MintOutcome(
            item_index=item_index,
            metadata_uri=build_metadata_uri(
                self.settings.backend_base_url,
                item_index,
                request.color,
                wallet_address=request.wallet_address,
                telegram_user_id=request.telegram_user_id,
                minted_at=minted_at,
            ),
            nft_address=nft_address if isinstance(nft_address, str) else None,
            color=request.color,
            owner_address=request.wallet_address,
            minted_at=minted_at,
            script_metadata_uri=result.get("metadataUri"),
            item_content=result.get("itemContent"),
        )
        logger.info(
            "Minted item #%s for %s (%s) nft=%s",
            outcome.item_index, outcome.owner_address, outcome.color, outcome.nft_address,
        )
        return outcome
