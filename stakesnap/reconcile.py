from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from .entities import BalanceState, HolderState, NftHolderState
from .errors import ReconciliationMismatch


@dataclass
class ReconciliationReport:
    """What the inventory cross-check found."""

    dropped: List[str] = field(default_factory=list)
    replayed_total: int = 0
    live_total: int = 0
    mismatch: Optional[ReconciliationMismatch] = None

    @property
    def ok(self) -> bool:
        return self.mismatch is None and not self.dropped


class InventoryReconciler:
    """Cross-check replayed holdings against what the contract holds right now.

    NFT mode drops replayed identifiers the contract no longer holds. Balance
    mode only compares totals and logs the difference; per-address ground
    truth is not available from the inventory endpoints.
    """

    def __init__(self, asset_key: str = "") -> None:
        self.asset_key = asset_key
        self.last_report: Optional[ReconciliationReport] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def reconcile(
        self,
        state: HolderState,
        live_inventory: Union[Iterable[str], int],
    ) -> HolderState:
        """Return state reconciled against live_inventory.

        Args:
            state: Replay output.
            live_inventory: Identifiers held by the contract (NFT mode) or the
                contract's current balance in minor units (balance mode).
        """

        if isinstance(state, NftHolderState):
            return self._reconcile_nfts(state, live_inventory)  # type: ignore[arg-type]
        return self._reconcile_balance(state, int(live_inventory))  # type: ignore[arg-type]

    def _reconcile_nfts(self, state: NftHolderState, live_ids: Iterable[str]) -> NftHolderState:
        listed = list(live_ids)
        live = set(listed)
        if len(listed) != len(live):
            self.logger.debug("Live inventory listed %d identifiers more than once", len(listed) - len(live))
        out = NftHolderState()
        out.warnings = list(state.warnings)
        report = ReconciliationReport(replayed_total=len(state), live_total=len(live))
        for entry in state.entries():
            if entry.identifier not in live:
                report.dropped.append(entry.identifier)
                continue
            out.set(entry.identifier, entry.owner, entry.last_event)
        if report.dropped:
            self.logger.warning(
                "Dropped %d replayed identifiers of %s absent from live inventory: %s",
                len(report.dropped),
                self.asset_key or "asset",
                ", ".join(report.dropped[:20]),
            )
        missing = len(live) - len(out)
        if missing > 0:
            # Held by the contract but never seen staked in the observable history.
            self.logger.info("%d live identifiers have no replayed owner", missing)
        self.last_report = report
        return out

    def _reconcile_balance(self, state: BalanceState, live_total: int) -> BalanceState:
        replayed = state.total()
        report = ReconciliationReport(replayed_total=replayed, live_total=live_total)
        if replayed != live_total:
            report.mismatch = ReconciliationMismatch(self.asset_key, replayed, live_total)
            self.logger.warning("%s", report.mismatch)
        self.last_report = report
        return state
