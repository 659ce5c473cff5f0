from __future__ import annotations

from typing import Any, List

from fastapi import FastAPI, HTTPException

from ..config_schema import get_default_config
from ..engine import (
    ReconstructOptions,
    SnapshotOptions,
    draw_winners,
    reconstruct_snapshot,
    snapshot_holders,
)
from ..entities import AssetType, HolderSnapshot
from ..errors import EmptyResultError, FetchError, OperationTimeout, UnsupportedProfile
from .schemas import (
    DrawResponse,
    EsdtDrawRequest,
    NftDrawRequest,
    OwnerStatOut,
    ReconciliationOut,
    SftDrawRequest,
    StakedDrawRequest,
)


app = FastAPI(title="Staked Asset Snapshot API")


def _as_dict(item: Any) -> dict:
    return item.to_dict() if hasattr(item, "to_dict") else dict(item)


def _respond(snap: HolderSnapshot, n: int, what: str) -> DrawResponse:
    selection = draw_winners(snap.pool, n)
    report = snap.reconciliation
    reconciliation = None
    if report is not None:
        reconciliation = ReconciliationOut(
            dropped=report.dropped,
            replayed_total=report.replayed_total,
            live_total=report.live_total,
            mismatch=str(report.mismatch) if report.mismatch is not None else None,
        )
    return DrawResponse(
        asset_key=snap.asset_key,
        asset_type=snap.asset_type.value,
        winners=[_as_dict(w) for w in selection],
        unique_owner_stats=[OwnerStatOut(**s.to_dict()) for s in snap.stats],
        total_count=snap.pool_size,
        decimals=snap.decimals,
        warnings=[f"{w.kind}: {w.key}" for w in snap.warnings],
        reconciliation=reconciliation,
        message=f"{len(selection)} winners have been selected from {what} {snap.asset_key}.",
    )


def _run(fn, *args, **kwargs) -> HolderSnapshot:
    try:
        return fn(*args, **kwargs)
    except UnsupportedProfile as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmptyResultError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except OperationTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))
    except FetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/snapshot/staked", response_model=DrawResponse)
def staked_draw(req: StakedDrawRequest) -> DrawResponse:
    cfg = get_default_config()
    snap = _run(
        reconstruct_snapshot,
        req.asset_key,
        req.contract_label,
        AssetType(req.asset_type),
        ReconstructOptions(include_reconciliation=req.include_reconciliation, decimals=req.decimals),
        cfg,
    )
    return _respond(snap, req.number_of_winners, "staked assets in")


@app.post("/snapshot/nft", response_model=DrawResponse)
def nft_draw(req: NftDrawRequest) -> DrawResponse:
    opts = SnapshotOptions(
        include_smart_contracts=req.include_smart_contracts,
        trait_type=req.trait_type,
        trait_value=req.trait_value,
        file_names=req.file_names_list,
    )
    snap = _run(snapshot_holders, req.collection_ticker, AssetType.NFT, opts, get_default_config())
    return _respond(snap, req.number_of_winners, "collection")


@app.post("/snapshot/sft", response_model=DrawResponse)
def sft_draw(req: SftDrawRequest) -> DrawResponse:
    editions: List[str] = [e.strip() for e in req.editions.split(",") if e.strip()]
    opts = SnapshotOptions(include_smart_contracts=req.include_smart_contracts, editions=editions)
    snap = _run(snapshot_holders, req.collection_ticker, AssetType.SFT, opts, get_default_config())
    return _respond(snap, req.number_of_winners, "SFT collection")


@app.post("/snapshot/esdt", response_model=DrawResponse)
def esdt_draw(req: EsdtDrawRequest) -> DrawResponse:
    opts = SnapshotOptions(include_smart_contracts=req.include_smart_contracts)
    snap = _run(snapshot_holders, req.token, AssetType.ESDT, opts, get_default_config())
    return _respond(snap, req.number_of_winners, "token")
