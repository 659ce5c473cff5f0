from __future__ import annotations

import logging
from typing import Iterable, List

from .config_schema import StakingContractProfile
from .entities import (
    AssetType,
    BalanceState,
    HolderState,
    NftHolderState,
    ReplayWarning,
    TransferEvent,
)

DUPLICATE_STAKE = "duplicate-stake"
UNSTAKE_WITHOUT_STAKE = "unstake-without-stake"
BALANCE_UNDERFLOW = "balance-underflow"


class ReplayEngine:
    """Fold a staking contract's transfer history into current holdings.

    Events are sorted by (timestamp, nonce, tx hash, transfer index) before
    folding, so the result does not depend on the order pages arrived in.
    NFT mode tracks identifier -> owner; SFT/ESDT track address -> balance.
    """

    def __init__(self) -> None:
        self.warnings: List[ReplayWarning] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def _warn(self, kind: str, key: str, event: TransferEvent, detail: str = "") -> None:
        w = ReplayWarning(kind=kind, key=key, event=event, detail=detail)
        self.warnings.append(w)
        self.logger.warning("%s for %s at tx %s (t=%s) %s", kind, key, event.tx_hash, event.timestamp, detail)

    def replay(
        self,
        events: Iterable[TransferEvent],
        profile: StakingContractProfile,
        asset_type: AssetType,
    ) -> HolderState:
        asset_type = AssetType(asset_type)
        self.warnings = []
        stake_fn = profile.stake_function_name
        unstake_fn = profile.unstake_function_for(asset_type)
        contract = profile.contract_address
        ordered = sorted(events, key=lambda e: e.sort_key)

        if asset_type.balance_mode:
            state = self._fold_balances(ordered, stake_fn, unstake_fn, contract)
        else:
            state = self._fold_nfts(ordered, stake_fn, unstake_fn, contract)
        state.warnings = list(self.warnings)
        self.logger.info(
            "Replayed %d events for %s: %d holdings, %d warnings",
            len(ordered),
            contract,
            len(state),
            len(self.warnings),
        )
        return state

    def _fold_nfts(
        self, events: List[TransferEvent], stake_fn: str, unstake_fn: str, contract: str
    ) -> NftHolderState:
        state = NftHolderState()
        for ev in events:
            ident = str(ev.unit)
            if ev.function_name == stake_fn and ev.receiver == contract:
                prev = state.get(ident)
                if prev is not None:
                    self._warn(DUPLICATE_STAKE, ident, ev, f"previous owner {prev.owner}, new owner {ev.sender}")
                state.set(ident, ev.sender, ev)
            elif ev.function_name == unstake_fn and ev.sender == contract:
                if state.remove(ident) is None:
                    self._warn(UNSTAKE_WITHOUT_STAKE, ident, ev)
        return state

    def _fold_balances(
        self, events: List[TransferEvent], stake_fn: str, unstake_fn: str, contract: str
    ) -> BalanceState:
        state = BalanceState()
        for ev in events:
            if ev.function_name == stake_fn and ev.receiver == contract:
                state.credit(ev.sender, ev.amount)
            elif ev.function_name == unstake_fn and ev.sender == contract:
                shortfall = state.debit(ev.receiver, ev.amount)
                if shortfall:
                    self._warn(BALANCE_UNDERFLOW, ev.receiver, ev, f"clamped {shortfall} to zero")
        return state


def replay(
    events: Iterable[TransferEvent],
    profile: StakingContractProfile,
    asset_type: AssetType,
) -> HolderState:
    """Convenience wrapper around ReplayEngine().replay."""

    return ReplayEngine().replay(events, profile, asset_type)
