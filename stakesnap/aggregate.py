from __future__ import annotations

from decimal import Context, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Union

from .entities import AssetType, BalanceState, HolderState, NftHolderState, OwnershipStat

# Wide enough for 18-decimal tokens with very large supplies.
_CTX = Context(prec=120)


def scale_units(raw: int, decimals: int) -> Decimal:
    """Minor units -> token units, exact."""

    return Decimal(int(raw)).scaleb(-int(decimals), context=_CTX)


def format_units(raw: int, decimals: int) -> str:
    """Minor units as a fixed-point string with exactly `decimals` places."""

    if decimals <= 0:
        return str(int(raw))
    quantum = Decimal(1).scaleb(-int(decimals), context=_CTX)
    return str(scale_units(raw, decimals).quantize(quantum, context=_CTX))


def _sorted_stats(totals: Mapping[str, int], asset_type: AssetType, decimals: int) -> List[OwnershipStat]:
    # Totals stay in integer minor units so ordering and sums are exact.
    ordered = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    if asset_type is AssetType.ESDT:
        return [OwnershipStat(owner=o, units_count=format_units(v, decimals)) for o, v in ordered]
    return [OwnershipStat(owner=o, units_count=int(v)) for o, v in ordered]


def _owner_totals(state: HolderState) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    if isinstance(state, NftHolderState):
        for entry in state.entries():
            totals[entry.owner] = totals.get(entry.owner, 0) + 1
        return totals
    for address, raw in state.balances().items():
        totals[address] = totals.get(address, 0) + int(raw)
    return totals


def aggregate(state: HolderState, asset_type: AssetType, decimals: int = 0) -> List[OwnershipStat]:
    """Per-owner unit counts, largest first, ties broken by owner address.

    NFT: one unit per identifier. SFT: whole-number balances, unscaled.
    ESDT: balances divided by 10**decimals and formatted to `decimals` places.
    """

    asset_type = AssetType(asset_type)
    if asset_type is AssetType.NFT and isinstance(state, BalanceState):
        raise TypeError("NFT aggregation expects an NftHolderState")
    return _sorted_stats(_owner_totals(state), asset_type, decimals)


def aggregate_records(
    records: Iterable[Union[Mapping[str, Any], Any]],
    asset_type: AssetType,
    decimals: int = 0,
) -> List[OwnershipStat]:
    """Same as aggregate() for live holder listings.

    Accepts mappings with ``address``/``balance`` (SFT/ESDT) or objects and
    mappings with an ``owner`` (NFT, one unit each).
    """

    asset_type = AssetType(asset_type)
    totals: Dict[str, int] = {}
    for rec in records:
        if asset_type is AssetType.NFT:
            owner = rec.get("owner") if isinstance(rec, Mapping) else getattr(rec, "owner")
            totals[owner] = totals.get(owner, 0) + 1
            continue
        if isinstance(rec, Mapping):
            owner, raw = rec.get("address"), rec.get("balance") or 0
        else:
            owner, raw = rec.address, rec.balance
        totals[owner] = totals.get(owner, 0) + int(raw)
    return _sorted_stats(totals, asset_type, decimals)
