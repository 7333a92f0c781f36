#!/usr/bin/env python3
"""
TON Colours mint backend web server
Usage: uvicorn ton_colours.web_server:create_app --factory --port 3000
       (or: python -m ton_colours.web_server)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import __version__
from .config import Settings, configure_logging, load_settings
from .errors import MintError
from .metadata import build_color_svg, build_metadata, parse_metadata_query
from .mint_service import MintService
from .validation import assert_hex_color, assert_telegram_user_id, assert_ton_address

logger = logging.getLogger(__name__)

router = APIRouter()

# ── Models ────────────────────────────────────────────────────────────────────


class MintBody(BaseModel):
    """POST /mint payload. Loosely typed; the validators below give the 400s."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    wallet_address: Any = None
    telegram_user_id: Any = None
    color: Any = None


def _service(request: Request) -> MintService:
    return request.app.state.mint_service


def _redirect_with_query(request: Request, path: str) -> RedirectResponse:
    query = request.url.query
    return RedirectResponse(url=f"{path}?{query}" if query else path, status_code=301)

# ── Routes ────────────────────────────────────────────────────────────────────


@router.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/api/status")
async def api_status(request: Request):
    """Queue depth and chain target. Lets the mini-app warn users about a backlog."""
    service = _service(request)
    return {
        "version": __version__,
        "network": service.settings.ton_network,
        "collection_address": service.settings.collection_address,
        "queue_pending": service.queue.pending,
        "mint_rate_limit": service.settings.mint_rate_limit,
    }


# Collections configured without a trailing slash on their base URL produce
# /metadata7 and /image7; send those to the canonical routes.
@router.get("/metadata{item_index:int}")
async def metadata_legacy(request: Request, item_index: int):
    return _redirect_with_query(request, f"/metadata/{item_index}")


@router.get("/image{item_index:int}")
async def image_legacy(request: Request, item_index: int):
    return _redirect_with_query(request, f"/image/{item_index}")


@router.get("/metadata/{item_index}")
async def metadata(request: Request, item_index: str):
    try:
        fields = parse_metadata_query(request.query_params)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return build_metadata(
        _service(request).settings.backend_base_url,
        item_index,
        fields["color"],
        wallet_address=fields["wallet"],
        telegram_user_id=fields["telegram_user_id"],
        minted_at=fields["minted_at"],
    )


@router.get("/image/{item_index}")
async def image(item_index: str, color: Optional[str] = None):
    if not color:
        raise HTTPException(status_code=400, detail="color query parameter is required")
    try:
        color_hex = assert_hex_color("#" + color.lstrip("#"))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=build_color_svg(color_hex),
        media_type="image/svg+xml",
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )


async def mint(request: Request, req: MintBody):
    try:
        wallet = assert_ton_address(req.wallet_address)
        color = assert_hex_color(req.color)
        telegram_user_id = assert_telegram_user_id(req.telegram_user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    outcome = await _service(request).mint_color_nft(
        wallet_address=wallet,
        telegram_user_id=telegram_user_id,
        color=color,
    )
    return {"status": "submitted", **outcome.to_response()}

# ── Error handling ────────────────────────────────────────────────────────────


async def _mint_error_handler(request: Request, exc: MintError) -> JSONResponse:
    logger.error(
        "[mint:error] %s %s: %s (%s)", request.method, request.url.path, exc.message, exc.code,
        exc_info=exc,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

# ── App ───────────────────────────────────────────────────────────────────────


def create_app(settings: Optional[Settings] = None, service: Optional[MintService] = None) -> FastAPI:
    if service is not None:
        settings = settings or service.settings
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    # One limiter per app. Every mint spends gas from the minter wallet and
    # holds the single queue.
    limiter = Limiter(key_func=get_remote_address)

    app = FastAPI(title="TON Colours", version=__version__)
    app.state.limiter = limiter
    app.state.mint_service = service or MintService(settings)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(MintError, _mint_error_handler)
    app.add_exception_handler(HTTPException, _http_error_handler)
    app.include_router(router)
    app.add_api_route(
        "/mint",
        limiter.limit(settings.mint_rate_limit)(mint),
        methods=["POST"],
        status_code=202,
    )
    return app


def main() -> None:
    import uvicorn

    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
