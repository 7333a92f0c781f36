"""
Runs the blueprint `deployNftItem` script for one NFT item.

  <command> --testnet|--mainnet [--custom ...] --tonconnect deployNftItem <collection>

Item data and wallet secrets travel in the child's environment, never in
argv. The child still runs as the same user, so anything that can read this
process's environment can read the mnemonic as well.
"""

import asyncio
import codecs
import logging
import os
from typing import Optional

from .config import DEFAULT_TONCENTER_ENDPOINTS, Settings
from .errors import DeployProcessFailed, ResultProtocolError
from .models import DeployRun, MintRequest
from .result_protocol import parse_mint_result

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


def build_script_args(settings: Settings) -> list[str]:
    args = ["--testnet" if settings.ton_network == "testnet" else "--mainnet"]

    # Default toncenter endpoints are implied by the network flag.
    if settings.ton_endpoint != DEFAULT_TONCENTER_ENDPOINTS.get(settings.ton_network):
        args += ["--custom", settings.ton_endpoint]
        args += ["--custom-type", settings.ton_network]
        args += ["--custom-version", "v2"]
        if settings.ton_api_key:
            args += ["--custom-key", settings.ton_api_key]

    # --tonconnect skips blueprint's interactive wallet picker; the script
    # detects automation mode and signs with TON_WALLET_MNEMONIC instead.
    args += ["--tonconnect", "deployNftItem"]
    return args


def build_command(settings: Settings) -> list[str]:
    return [*settings.mint_command, *build_script_args(settings), settings.collection_address]


def build_script_env(settings: Settings, request: MintRequest,
                     base_env: Optional[dict] = None) -> dict[str, str]:
    env = dict(os.environ if base_env is None else base_env)
    env.update({
        "TON_COLOURS_AUTOMATION": "true",
        "TON_COLOURS_COLLECTION_ADDRESS": settings.collection_address,
        "TON_COLOURS_ITEM_OWNER": request.wallet_address,
        "TON_COLOURS_ITEM_COLOR": request.color,
        "TON_COLOURS_ITEM_TELEGRAM_ID": str(request.telegram_user_id),
        "TON_WALLET_MNEMONIC": " ".join(settings.mnemonic_words),
        "TON_WALLET_VERSION": settings.wallet_version,
        "TON_NETWORK": settings.ton_network,
        "TON_ENDPOINT": settings.ton_endpoint,
    })
    return env


def _log_line(label: str, line: str) -> None:
    if line.strip():
        logger.debug("[deployNftItem:%s] %s", label, line.rstrip("\r"))


async def _drain(stream: asyncio.StreamReader, chunks: list[bytes], label: str) -> None:
    # Chunks can split a UTF-8 sequence or a line; only whole lines are logged.
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    partial = ""
    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            break
        chunks.append(chunk)
        *lines, partial = (partial + decoder.decode(chunk)).split("\n")
        for line in lines:
            _log_line(label, line)
    _log_line(label, partial + decoder.decode(b"", final=True))


class DeployRunner:
    def __init__(self, settings: Settings):
        self.settings = settings

    async def run(self, request: MintRequest) -> DeployRun:
        command = build_command(self.settings)
        env = build_script_env(self.settings, request)

        logger.info(
            "Spawning deployNftItem for owner=%s color=%s tg=%s",
            request.wallet_address, request.color, request.telegram_user_id,
        )
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(self.settings.mint_cwd),
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DeployProcessFailed(f"Mint script could not be started: {e}") from e

        out_chunks: list[bytes] = []
        err_chunks: list[bytes] = []
        await asyncio.gather(
            _drain(proc.stdout, out_chunks, "stdout"),
            _drain(proc.stderr, err_chunks, "stderr"),
        )
        returncode = await proc.wait()

        stdout = b"".join(out_chunks).decode("utf-8", errors="replace")
        stderr = b"".join(err_chunks).decode("utf-8", errors="replace")

        if returncode != 0:
            reason = f"signal {-returncode}" if returncode < 0 else f"code {returncode}"
            logger.error("deployNftItem exited abnormally (%s): %s", reason, stderr.strip()[-500:])
            raise DeployProcessFailed(
                f"Mint script exited abnormally ({reason})",
                stdout=stdout,
                stderr=stderr,
                returncode=returncode,
            )

        logger.info("deployNftItem finished (pid=%s)", proc.pid)
        try:
            result = parse_mint_result(stdout)
        except ResultProtocolError as e:
            e.stderr = stderr
            logger.error("deployNftItem broke the result protocol: %s", e)
            raise
        return DeployRun(result=result, stdout=stdout, stderr=stderr)
