import sys
from pathlib import Path

import pytest

from ton_colours.config import Settings

ZERO_ADDRESS = "EQAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAM9c"
MNEMONIC = " ".join(["abandon"] * 24)
FAKE_DEPLOYER = Path(__file__).parent / "fake_deployer.py"

BASE_ENV = {
    "MINT_WALLET_MNEMONIC": MNEMONIC,
    "MINT_WALLET_ADDRESS": ZERO_ADDRESS,
    "NFT_COLLECTION_ADDRESS": ZERO_ADDRESS,
    "TON_HTTP_ENDPOINT": "https://testnet.toncenter.com/api/v2/jsonRPC",
    "BACKEND_PUBLIC_BASE_URL": "https://colours.example.com/",
}


class FakeToncenter:
    """Drop-in for ToncenterClient that never touches the network."""

    def __init__(self, info=None, error=None):
        self.info = {"state": "active", "balance": "100000000000"} if info is None else info
        self.error = error
        self.calls = []

    async def get_address_information(self, address):
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        return self.info


@pytest.fixture
def base_env():
    return dict(BASE_ENV)


@pytest.fixture
def make_settings(tmp_path):
    """Settings wired to the fake deployer, with optional field overrides."""

    def _make(**overrides):
        settings = Settings.from_env(BASE_ENV)
        fields = {
            "mint_command": (sys.executable, str(FAKE_DEPLOYER)),
            "mint_cwd": tmp_path,
        }
        fields.update(overrides)
        return settings.model_copy(update=fields)

    return _make


@pytest.fixture
def toncenter():
    return FakeToncenter()


@pytest.fixture
def deploy_files(tmp_path, monkeypatch):
    """Point the fake deployer's side files into tmp_path."""
    files = {
        "log": tmp_path / "deploy.log",
        "dump": tmp_path / "deploy.json",
        "counter": tmp_path / "counter",
    }
    monkeypatch.setenv("FAKE_DEPLOY_LOG", str(files["log"]))
    monkeypatch.setenv("FAKE_DEPLOY_DUMP", str(files["dump"]))
    monkeypatch.delenv("FAKE_DEPLOY_MODE", raising=False)
    monkeypatch.delenv("FAKE_DEPLOY_COUNTER", raising=False)
    monkeypatch.delenv("FAKE_DEPLOY_SLEEP", raising=False)
    return files


def read_deploy_log(path):
    """Parse the fake deployer log into (event, color, time) tuples."""
    if not path.exists():
        return []
    entries = []
    for line in path.read_text().splitlines():
        event, color, stamp = line.split()
        entries.append((event, color, float(stamp)))
    return entries


@pytest.fixture
def deploy_log(deploy_files):
    return lambda: read_deploy_log(deploy_files["log"])
