"""Caller-facing entry points: reconstruct holders and draw winners."""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Sequence, Union

import numpy as np
from pydantic import BaseModel, Field

from .aggregate import aggregate, aggregate_records
from .config_schema import Config, StakingContractProfile, get_default_config
from .entities import AssetType, HolderSnapshot, NftHolderState, OwnershipStat, WinnerSelection
from .errors import EmptyResultError
from .io_connectors.multiversx import MultiversXClient
from .normalizer import EventNormalizer
from .reconcile import InventoryReconciler
from .replay import ReplayEngine
from .selector import select
from .snapshots import fetch_esdt_holders, fetch_nft_holders, fetch_sft_holders, filter_nft_holdings

logger = logging.getLogger(__name__)


class ReconstructOptions(BaseModel):
    """Per-call knobs for reconstruct_holders."""

    include_reconciliation: bool = False
    decimals: Optional[int] = Field(default=None, ge=0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class SnapshotOptions(BaseModel):
    """Per-call knobs for live holder snapshots."""

    include_smart_contracts: bool = False
    editions: List[str] = Field(default_factory=list)
    trait_type: Optional[str] = None
    trait_value: Optional[str] = None
    file_names: List[str] = Field(default_factory=list)
    decimals: Optional[int] = Field(default=None, ge=0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


def _deadline(timeout_seconds: Optional[float]) -> Optional[float]:
    return time.monotonic() + timeout_seconds if timeout_seconds else None


def _resolve_profile(cfg: Config, profile: Union[str, StakingContractProfile]) -> StakingContractProfile:
    if isinstance(profile, StakingContractProfile):
        return profile
    return cfg.profile(profile)


def reconstruct_snapshot(
    asset_key: str,
    staking_profile: Union[str, StakingContractProfile],
    asset_type: AssetType,
    options: Optional[ReconstructOptions] = None,
    cfg: Optional[Config] = None,
    client: Optional[MultiversXClient] = None,
) -> HolderSnapshot:
    """Replay a staking contract's history for one asset into current holders.

    Args:
        asset_key: Collection ticker (NFT/SFT) or token identifier (ESDT).
        staking_profile: Profile or its configured label.
        asset_type: NFT, SFT or ESDT.
        options: Reconciliation, decimals and timeout settings.
        cfg: Configuration; packaged defaults when None.
        client: Pre-built API client (tests); a fresh one per call otherwise.

    Returns:
        HolderSnapshot with sorted owner stats and the draw pool.

    Raises:
        UnsupportedProfile: unknown label, before any network call.
        FetchExhausted / FetchError / OperationTimeout: from the fetch layer.
        EmptyResultError: nothing staked.
    """

    options = options or ReconstructOptions()
    cfg = cfg or get_default_config()
    profile = _resolve_profile(cfg, staking_profile)
    asset_type = AssetType(asset_type)
    client = client or MultiversXClient(cfg)
    deadline = _deadline(options.timeout_seconds)

    stake_fn = profile.stake_function_name
    unstake_fn = profile.unstake_function_for(asset_type)
    raw: List[Any] = client.account_transfers(profile.contract_address, asset_key, stake_fn, deadline=deadline)
    if unstake_fn != stake_fn:
        raw += client.account_transfers(profile.contract_address, asset_key, unstake_fn, deadline=deadline)

    normalizer = EventNormalizer(profile, asset_key, asset_type)
    events = normalizer.normalize_all(raw)
    logger.info(
        "%s on %s: %d raw records -> %d events (%d malformed)",
        asset_key,
        profile.label or profile.contract_address,
        len(raw),
        len(events),
        normalizer.skipped_malformed,
    )

    engine = ReplayEngine()
    state = engine.replay(events, profile, asset_type)

    report = None
    if options.include_reconciliation:
        reconciler = InventoryReconciler(asset_key)
        if asset_type is AssetType.NFT:
            items = client.account_nfts(profile.contract_address, asset_key, deadline=deadline)
            live: Any = [i.get("identifier") for i in items if isinstance(i, dict)]
        elif asset_type is AssetType.SFT:
            items = client.account_nfts(profile.contract_address, asset_key, deadline=deadline)
            live = sum(int(str(i.get("balance") or 0)) for i in items if isinstance(i, dict))
        else:
            live = client.account_token_balance(profile.contract_address, asset_key, deadline=deadline)
        state = reconciler.reconcile(state, live)
        report = reconciler.last_report

    decimals = 0
    if asset_type is AssetType.ESDT:
        decimals = options.decimals
        if decimals is None:
            decimals = client.token_decimals(asset_key, deadline=deadline)

    stats = aggregate(state, asset_type, decimals)
    if not stats:
        raise EmptyResultError(asset_key, "no staked holdings found")

    if isinstance(state, NftHolderState):
        pool: Sequence[Any] = state.entries()
    else:
        pool = stats
    return HolderSnapshot(
        asset_key=asset_key,
        asset_type=asset_type,
        stats=stats,
        pool=pool,
        decimals=decimals,
        warnings=list(engine.warnings),
        reconciliation=report,
    )


def reconstruct_holders(
    asset_key: str,
    staking_profile: Union[str, StakingContractProfile],
    asset_type: AssetType,
    options: Optional[ReconstructOptions] = None,
    cfg: Optional[Config] = None,
    client: Optional[MultiversXClient] = None,
) -> List[OwnershipStat]:
    """Sorted per-owner stats of the assets currently staked in a contract."""

    return reconstruct_snapshot(asset_key, staking_profile, asset_type, options, cfg, client).stats


def snapshot_holders(
    asset_key: str,
    asset_type: AssetType,
    options: Optional[SnapshotOptions] = None,
    cfg: Optional[Config] = None,
    client: Optional[MultiversXClient] = None,
) -> HolderSnapshot:
    """Current holders of an asset held directly in wallets.

    NFT: one pool entry per NFT (optionally trait / file-name filtered).
    SFT: one pool entry per (edition, holder) row. ESDT: one per holder.
    """

    options = options or SnapshotOptions()
    cfg = cfg or get_default_config()
    asset_type = AssetType(asset_type)
    client = client or MultiversXClient(cfg)
    deadline = _deadline(options.timeout_seconds)

    decimals = 0
    pool: Sequence[Any]
    if asset_type is AssetType.NFT:
        holdings = fetch_nft_holders(client, asset_key, options.include_smart_contracts, deadline=deadline)
        pool = filter_nft_holdings(holdings, options.trait_type, options.trait_value, options.file_names)
    elif asset_type is AssetType.SFT:
        if not options.editions:
            raise ValueError("SFT snapshots need at least one edition")
        pool = fetch_sft_holders(client, asset_key, options.editions, options.include_smart_contracts, deadline)
    else:
        decimals = options.decimals
        if decimals is None:
            decimals = client.token_decimals(asset_key, deadline=deadline)
        pool = fetch_esdt_holders(client, asset_key, options.include_smart_contracts, deadline)

    stats = aggregate_records(pool, asset_type, decimals)
    if not stats:
        raise EmptyResultError(asset_key, "no holders matching the criteria")
    return HolderSnapshot(asset_key=asset_key, asset_type=asset_type, stats=stats, pool=pool, decimals=decimals)


def draw_winners(
    holders: Sequence[Any],
    n: int,
    rng: Optional[Union[np.random.Generator, int]] = None,
) -> WinnerSelection:
    """Uniform draw without replacement of min(n, len(holders)) records."""

    winners = select(holders, n, rng)
    return WinnerSelection(winners=tuple(winners), requested=n, pool_size=len(holders))
