from __future__ import annotations

import time

import pytest

from stakesnap.engine import (
    ReconstructOptions,
    draw_winners,
    reconstruct_holders,
    reconstruct_snapshot,
)
from stakesnap.entities import AssetType, HolderEntry
from stakesnap.errors import EmptyResultError, FetchExhausted, OperationTimeout, UnsupportedProfile
from stakesnap.io_connectors.multiversx import MultiversXClient
from .fixtures import CONTRACT, STAKE_FN, FakeResponse, FakeSession, api_router, make_config, raw_tx

COLL = "COLL-abcdef"
TOKEN = "TOK-123456"
TRANSFERS = f"accounts/{CONTRACT}/transfers"


def _nft(nonce):
    return {"collection": COLL, "identifier": f"{COLL}-{nonce}", "value": "1"}


def _esdt(value):
    return {"token": TOKEN, "value": str(value)}


def _by_function(stake_records, unstake_records):
    def _route(params):
        return stake_records if params["function"] == STAKE_FN else unstake_records

    return _route


def _client(routes):
    cfg = make_config()
    session = FakeSession(api_router(routes))
    return cfg, session, MultiversXClient(cfg, session=session)


def test_unknown_profile_fails_before_any_request():
    cfg, session, client = _client({})
    with pytest.raises(UnsupportedProfile):
        reconstruct_holders(COLL, "noSuchContract", AssetType.NFT, cfg=cfg, client=client)
    assert session.calls == []


def test_nft_end_to_end_with_reconciliation():
    stakes = [
        raw_tx(STAKE_FN, "erd1alice", CONTRACT, [_nft("01"), _nft("02")], ts=1, tx_hash="a"),
        raw_tx(STAKE_FN, "erd1bob", CONTRACT, [_nft("03")], ts=2, tx_hash="b"),
        raw_tx(STAKE_FN, "erd1carol", CONTRACT, [_nft("04")], ts=3, tx_hash="c"),
    ]
    unstakes = [raw_tx("ESDTNFTTransfer", CONTRACT, "erd1alice", [_nft("02")], ts=4, tx_hash="d")]
    cfg, session, client = _client(
        {
            TRANSFERS: _by_function(stakes, unstakes),
            f"accounts/{CONTRACT}/nfts": [{"identifier": f"{COLL}-01"}, {"identifier": f"{COLL}-03"}],
        }
    )

    snap = reconstruct_snapshot(
        COLL, "testStake", AssetType.NFT, ReconstructOptions(include_reconciliation=True), cfg, client
    )

    assert [s.to_dict() for s in snap.stats] == [
        {"owner": "erd1alice", "tokensCount": 1},
        {"owner": "erd1bob", "tokensCount": 1},
    ]
    assert [(e.identifier, e.owner) for e in snap.pool] == [(f"{COLL}-01", "erd1alice"), (f"{COLL}-03", "erd1bob")]
    assert snap.reconciliation.dropped == [f"{COLL}-04"]
    functions = {params.get("function") for url, params in session.calls if url.endswith("/transfers")}
    assert functions == {STAKE_FN, "ESDTNFTTransfer"}


def test_esdt_decimals_fetched_from_token_metadata():
    stakes = [
        raw_tx(STAKE_FN, "erd1alice", CONTRACT, [_esdt(1500)], ts=1, tx_hash="a"),
        raw_tx(STAKE_FN, "erd1bob", CONTRACT, [_esdt(500)], ts=2, tx_hash="b"),
    ]
    unstakes = [raw_tx("ESDTTransfer", CONTRACT, "erd1alice", [_esdt(300)], ts=3, tx_hash="c")]
    cfg, session, client = _client(
        {TRANSFERS: _by_function(stakes, unstakes), f"tokens/{TOKEN}": {"decimals": 2}}
    )

    snap = reconstruct_snapshot(TOKEN, "testStake", AssetType.ESDT, cfg=cfg, client=client)

    assert snap.decimals == 2
    assert [(s.owner, s.units_count) for s in snap.stats] == [("erd1alice", "12.00"), ("erd1bob", "5.00")]
    assert snap.pool == snap.stats


def test_explicit_decimals_skip_metadata_lookup():
    stakes = [raw_tx(STAKE_FN, "erd1alice", CONTRACT, [_esdt(7)], ts=1)]
    cfg, session, client = _client({TRANSFERS: _by_function(stakes, [])})
    stats = reconstruct_holders(
        TOKEN, "testStake", AssetType.ESDT, ReconstructOptions(decimals=1), cfg, client
    )
    assert stats[0].units_count == "0.7"
    assert not any(url.endswith(f"tokens/{TOKEN}") for url, _ in session.calls)


def test_nothing_staked_is_empty_result():
    cfg, session, client = _client({TRANSFERS: []})
    with pytest.raises(EmptyResultError):
        reconstruct_holders(COLL, "testStake", AssetType.NFT, cfg=cfg, client=client)


def test_fetch_failures_propagate():
    cfg, session, client = _client({TRANSFERS: FakeResponse(503)})
    with pytest.raises(FetchExhausted) as exc_info:
        reconstruct_holders(COLL, "testStake", AssetType.NFT, cfg=cfg, client=client)
    assert exc_info.value.status == 503
    assert exc_info.value.attempts == 2


def test_draw_winners_from_pool():
    pool = [HolderEntry(identifier=f"{COLL}-{i:02d}", owner=f"erd1owner{i % 3}") for i in range(10)]
    selection = draw_winners(pool, 4, rng=7)
    assert len(selection) == 4
    assert selection.pool_size == 10
    assert selection.requested == 4
    assert len({w.identifier for w in selection}) == 4

    everyone = draw_winners(pool, 50, rng=7)
    assert len(everyone) == 10


def _sft(nonce, value):
    return {"collection": COLL, "identifier": f"{COLL}-{nonce}", "value": str(value)}


def _sft_routes(live_rows):
    stakes = [
        raw_tx(STAKE_FN, "erd1alice", CONTRACT, [_sft("01", 5)], ts=1, tx_hash="a"),
        raw_tx(STAKE_FN, "erd1bob", CONTRACT, [_sft("02", 2)], ts=2, tx_hash="b"),
    ]
    unstakes = [raw_tx("ESDTNFTTransfer", CONTRACT, "erd1alice", [_sft("01", 4)], ts=3, tx_hash="c")]
    return {TRANSFERS: _by_function(stakes, unstakes), f"accounts/{CONTRACT}/nfts": live_rows}


def test_sft_reconciliation_matching_total():
    live = [{"identifier": f"{COLL}-01", "balance": "1"}, {"identifier": f"{COLL}-02", "balance": "2"}]
    cfg, session, client = _client(_sft_routes(live))
    snap = reconstruct_snapshot(
        COLL, "testStake", AssetType.SFT, ReconstructOptions(include_reconciliation=True), cfg, client
    )
    assert [(s.owner, s.units_count) for s in snap.stats] == [("erd1bob", 2), ("erd1alice", 1)]
    assert snap.reconciliation.mismatch is None
    assert snap.reconciliation.live_total == 3


def test_sft_reconciliation_mismatch_is_reported_not_raised(caplog):
    live = [{"identifier": f"{COLL}-01", "balance": "10"}]
    cfg, session, client = _client(_sft_routes(live))
    snap = reconstruct_snapshot(
        COLL, "testStake", AssetType.SFT, ReconstructOptions(include_reconciliation=True), cfg, client
    )
    assert snap.reconciliation.mismatch.replayed == 3
    assert snap.reconciliation.mismatch.live == 10
    # balances are left as replayed
    assert [(s.owner, s.units_count) for s in snap.stats] == [("erd1bob", 2), ("erd1alice", 1)]
    assert "replayed total 3" in caplog.text


def _esdt_routes(extra):
    stakes = [raw_tx(STAKE_FN, "erd1alice", CONTRACT, [_esdt(100)], ts=1, tx_hash="a")]
    routes = {TRANSFERS: _by_function(stakes, [])}
    routes.update(extra)
    return routes


def test_esdt_reconciliation_matching_balance():
    cfg, session, client = _client(_esdt_routes({f"accounts/{CONTRACT}/tokens/{TOKEN}": {"balance": "100"}}))
    snap = reconstruct_snapshot(
        TOKEN,
        "testStake",
        AssetType.ESDT,
        ReconstructOptions(include_reconciliation=True, decimals=0),
        cfg,
        client,
    )
    assert snap.reconciliation.ok
    assert snap.stats[0].units_count == "100"


def test_esdt_reconciliation_with_no_live_balance():
    # No route: the contract's token endpoint answers 404.
    cfg, session, client = _client(_esdt_routes({}))
    snap = reconstruct_snapshot(
        TOKEN,
        "testStake",
        AssetType.ESDT,
        ReconstructOptions(include_reconciliation=True, decimals=0),
        cfg,
        client,
    )
    assert snap.reconciliation.mismatch.replayed == 100
    assert snap.reconciliation.mismatch.live == 0
    assert [(s.owner, s.units_count) for s in snap.stats] == [("erd1alice", "100")]


def test_single_requests_respect_deadline():
    cfg, session, client = _client({f"tokens/{TOKEN}": {"decimals": 2}})
    with pytest.raises(OperationTimeout):
        client.token_decimals(TOKEN, deadline=time.monotonic() - 1)
    with pytest.raises(OperationTimeout):
        client.account_token_balance(CONTRACT, TOKEN, deadline=time.monotonic() - 1)
    assert session.calls == []
    assert client.token_decimals(TOKEN, deadline=time.monotonic() + 60) == 2
