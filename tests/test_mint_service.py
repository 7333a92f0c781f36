import asyncio
import logging

import pytest

from ton_colours.errors import (
    DeployProcessFailed,
    InvalidResultPayload,
    MissingResultPayload,
    ToncenterError,
    WalletStatusUnavailable,
)
from ton_colours.mint_service import MintService
from ton_colours.wallet import WalletStatusResolver

OWNER_A = "EQAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAM9c"
OWNER_B = "EQBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBBU"


@pytest.fixture
def service(make_settings, toncenter):
    settings = make_settings()
    return MintService(settings, resolver=WalletStatusResolver(settings, client=toncenter, address=OWNER_A))


def test_mint_resolves_outcome_from_result_payload(service, toncenter, deploy_files):
    outcome = asyncio.run(service.mint_color_nft(OWNER_A, 77, "#ff0000"))

    assert toncenter.calls and len(toncenter.calls) == 1
    assert outcome.item_index == 7
    assert outcome.nft_address == "EQminted"
    assert outcome.color == "#FF0000"
    assert outcome.owner_address == OWNER_A
    assert outcome.minted_at == "2025-01-01T00:00:00.000Z"
    assert outcome.item_content == "7?color=FF0000"
    assert outcome.script_metadata_uri is None
    assert outcome.transaction is None
    assert outcome.metadata_uri.startswith("https://colours.example.com/metadata/7?")
    assert "/metadata/7" in outcome.metadata_uri
    assert "mintedAt=2025-01-01T00%3A00%3A00.000Z" in outcome.metadata_uri
    assert "tg=77" in outcome.metadata_uri


def test_outcome_serialises_in_camel_case(service, deploy_files):
    response = asyncio.run(service.mint_color_nft(OWNER_A, 1, "#112233")).to_response()
    assert set(response) == {
        "itemIndex", "metadataUri", "transaction", "nftAddress", "color",
        "ownerAddress", "mintedAt", "scriptMetadataUri", "itemContent",
    }


def test_missing_result_payload_rejects_despite_exit_zero(service, deploy_files, monkeypatch):
    monkeypatch.setenv("FAKE_DEPLOY_MODE", "no-result")

    with pytest.raises(MissingResultPayload, match="result payload"):
        asyncio.run(service.mint_color_nft(OWNER_A, 99, "#00FF00"))


def test_process_failure_carries_stderr(service, deploy_files, monkeypatch):
    monkeypatch.setenv("FAKE_DEPLOY_MODE", "fail")

    with pytest.raises(DeployProcessFailed, match="abnormally") as excinfo:
        asyncio.run(service.mint_color_nft(OWNER_A, 123, "#ABCDEF"))
    assert "boom" in excinfo.value.stderr


def test_low_balance_still_mints(service, toncenter, deploy_files, caplog):
    toncenter.info = {"state": "active", "balance": "0"}

    with caplog.at_level(logging.WARNING, logger="ton_colours.preconditions"):
        outcome = asyncio.run(service.mint_color_nft(OWNER_A, 42, "#112233"))

    assert deploy_files["dump"].exists()
    assert outcome.item_index == 7
    assert any("precheck" in r.message for r in caplog.records)


def test_rpc_failure_rejects_before_spawning(service, toncenter, deploy_files):
    toncenter.error = ToncenterError("getAddressInformation failed: timed out")

    with pytest.raises(WalletStatusUnavailable):
        asyncio.run(service.mint_color_nft(OWNER_A, 42, "#112233"))
    assert not deploy_files["dump"].exists()


def test_queue_survives_failed_mint(service, toncenter, deploy_files, deploy_log):
    async def scenario():
        toncenter.error = ToncenterError("down")
        first = asyncio.ensure_future(service.mint_color_nft(OWNER_A, 1, "#111111"))
        with pytest.raises(WalletStatusUnavailable):
            await first
        toncenter.error = None
        return await service.mint_color_nft(OWNER_A, 2, "#222222")

    outcome = asyncio.run(scenario())
    assert outcome.item_index == 7
    assert [e[:2] for e in deploy_log()] == [("start", "#222222"), ("end", "#222222")]


def test_invalid_item_index_is_a_protocol_error(service, deploy_files, monkeypatch, tmp_path):
    counter = tmp_path / "counter"
    counter.write_text("0")
    monkeypatch.setenv("FAKE_DEPLOY_COUNTER", str(counter))

    async def broken_run(request):
        run = await type(service.deployer).run(service.deployer, request)
        run.result["itemIndex"] = "zero"
        return run

    monkeypatch.setattr(service.deployer, "run", broken_run)
    with pytest.raises(InvalidResultPayload, match="numeric itemIndex") as excinfo:
        asyncio.run(service.mint_color_nft(OWNER_A, 1, "#111111"))
    assert "MINT_RESULT=" in excinfo.value.stdout


def test_missing_minted_at_is_stamped_now(service, deploy_files, monkeypatch):
    async def run_without_timestamp(request):
        run = await type(service.deployer).run(service.deployer, request)
        run.result.pop("mintedAt")
        return run

    monkeypatch.setattr(service.deployer, "run", run_without_timestamp)
    outcome = asyncio.run(service.mint_color_nft(OWNER_A, 1, "#111111"))

    assert outcome.minted_at.endswith("Z")
    assert len(outcome.minted_at) == len("2025-01-01T00:00:00.000Z")


def test_concurrent_mints_spawn_one_process_at_a_time(service, deploy_files, deploy_log, monkeypatch, tmp_path):
    counter = tmp_path / "counter"
    counter.write_text("10")
    monkeypatch.setenv("FAKE_DEPLOY_COUNTER", str(counter))
    monkeypatch.setenv("FAKE_DEPLOY_SLEEP", "0.1")
    colors = ["#112233", "#445566", "#778899"]

    async def scenario():
        return await asyncio.gather(*[
            service.mint_color_nft(owner, n, color)
            for n, (owner, color) in enumerate(zip([OWNER_A, OWNER_B, OWNER_A], colors))
        ])

    outcomes = asyncio.run(scenario())

    assert [o.item_index for o in outcomes] == [10, 11, 12]
    assert [o.color for o in outcomes] == colors
    assert [o.nft_address for o in outcomes] == ["EQitem10", "EQitem11", "EQitem12"]
    assert outcomes[1].minted_at == "2025-02-01T00:11:00.000Z"
    assert "mintedAt=2025-02-01T00%3A11%3A00.000Z" in outcomes[1].metadata_uri

    log = deploy_log()
    assert [(event, color) for event, color, _ in log] == [
        (event, color) for color in colors for event in ("start", "end")
    ]
    stamps = [stamp for _, _, stamp in log]
    assert stamps == sorted(stamps)


def test_second_mint_waits_for_first_to_settle(service, deploy_files, deploy_log, monkeypatch, tmp_path):
    counter = tmp_path / "counter"
    counter.write_text("10")
    monkeypatch.setenv("FAKE_DEPLOY_COUNTER", str(counter))
    monkeypatch.setenv("FAKE_DEPLOY_SLEEP", "0.2")

    async def scenario():
        first = asyncio.ensure_future(service.mint_color_nft(OWNER_A, 1, "#112233"))
        second = asyncio.ensure_future(service.mint_color_nft(OWNER_B, 2, "#445566"))
        await asyncio.sleep(0.1)
        spawned_while_first_running = [color for _, color, _ in deploy_log()]
        first_result = await first
        second_result = await second
        return spawned_while_first_running, first_result, second_result

    spawned, first, second = asyncio.run(scenario())

    assert "#445566" not in spawned
    assert first.item_index == 10
    assert second.item_index == 11
    assert second.item_index > first.item_index


def test_ensure_minter_wallet_ready_reports_without_deploying(service, toncenter, deploy_log):
    report = asyncio.run(service.ensure_minter_wallet_ready())

    assert report.ready
    assert report.balance_nano == 100_000_000_000
    assert report.required_nano == 29_000_000
    assert report.state == "active"
    assert len(toncenter.calls) == 1
    assert deploy_log() == []
