from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .config_schema import StakingContractProfile
from .entities import STATUS_SUCCESS, AssetType, TransferEvent


class EventNormalizer:
    """Map raw transfer records onto TransferEvents for one asset and contract.

    Records are dropped (never raised on) when they failed, call an
    unrecognized function, carry no transfer of the target asset, or are
    malformed.
    """

    def __init__(self, profile: StakingContractProfile, asset_key: str, asset_type: AssetType) -> None:
        self.profile = profile
        self.asset_key = asset_key
        self.asset_type = AssetType(asset_type)
        self.stake_function = profile.stake_function_name
        self.unstake_function = profile.unstake_function_for(self.asset_type)
        self.functions = {self.stake_function, self.unstake_function}
        self.skipped_malformed = 0
        self.logger = logging.getLogger(self.__class__.__name__)

    def _matches(self, transfer: Dict[str, Any]) -> bool:
        return transfer.get("collection") == self.asset_key or transfer.get("token") == self.asset_key

    def _unit(self, transfer: Dict[str, Any]) -> Any:
        if self.asset_type is AssetType.NFT:
            ident = transfer.get("identifier") or transfer.get("token")
            if not isinstance(ident, str) or not ident:
                raise ValueError("transfer has no identifier")
            return ident
        value = int(str(transfer["value"]))
        if value < 0:
            raise ValueError(f"negative transfer value {value}")
        return value

    def normalize_transfers(self, raw: Dict[str, Any]) -> List[TransferEvent]:
        """One TransferEvent per matching transfer inside raw."""

        try:
            if raw.get("status") != STATUS_SUCCESS:
                return []
            function = raw.get("function")
            if function not in self.functions:
                return []
            transfers = ((raw.get("action") or {}).get("arguments") or {}).get("transfers") or []
            matching = [(i, t) for i, t in enumerate(transfers) if isinstance(t, dict) and self._matches(t)]
            if not matching:
                return []
            tx_hash = str(raw.get("txHash") or raw.get("hash") or "")
            timestamp = int(raw["timestamp"])
            nonce = int(raw.get("nonce") or 0)
            sender = raw["sender"]
            receiver = raw["receiver"]
            return [
                TransferEvent(
                    tx_hash=tx_hash,
                    timestamp=timestamp,
                    nonce=nonce,
                    function_name=function,
                    sender=sender,
                    receiver=receiver,
                    status=STATUS_SUCCESS,
                    asset_key=self.asset_key,
                    unit=self._unit(t),
                    transfer_index=i,
                )
                for i, t in matching
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            self.skipped_malformed += 1
            ref = raw.get("txHash") if isinstance(raw, dict) else None
            self.logger.warning("Skipping malformed transfer record %s: %s", ref, e)
            return []

    def normalize(self, raw: Dict[str, Any]) -> Optional[TransferEvent]:
        """First matching TransferEvent of raw, or None when it is dropped."""

        events = self.normalize_transfers(raw)
        return events[0] if events else None

    def normalize_all(self, records: Iterable[Dict[str, Any]]) -> List[TransferEvent]:
        out: List[TransferEvent] = []
        for raw in records:
            out.extend(self.normalize_transfers(raw))
        return out
