from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from .reconcile import ReconciliationReport


class AssetType(str, Enum):
    """Asset semantics that drive replay mode and unit scaling."""

    NFT = "nft"
    SFT = "sft"
    ESDT = "esdt"

    @property
    def balance_mode(self) -> bool:
        """True when holdings are tracked as address -> amount."""

        return self is not AssetType.NFT


# Fixed transfer-back function names used by staking contracts on unstake.
NFT_TRANSFER_FUNCTION = "ESDTNFTTransfer"
ESDT_TRANSFER_FUNCTION = "ESDTTransfer"

STATUS_SUCCESS = "success"


@dataclass(frozen=True)
class TransferEvent:
    """A normalized transfer of one asset unit (or amount) inside a transaction.

    Attributes:
        tx_hash: Transaction hash.
        timestamp: Unix seconds.
        nonce: Sender nonce, used to break timestamp ties.
        function_name: Contract function invoked by the transaction.
        sender: Transaction sender address.
        receiver: Transaction receiver address.
        status: "success" or "fail".
        asset_key: Collection ticker or token identifier the transfer matched.
        unit: NFT identifier (str) or fungible amount in minor units (int).
        transfer_index: Position of the transfer inside the transaction.
    """

    tx_hash: str
    timestamp: int
    nonce: int
    function_name: str
    sender: str
    receiver: str
    status: str
    asset_key: str
    unit: Union[str, int]
    transfer_index: int = 0

    @property
    def sort_key(self) -> Tuple[int, int, str, int]:
        return (self.timestamp, self.nonce, self.tx_hash, self.transfer_index)

    @property
    def amount(self) -> int:
        if isinstance(self.unit, int):
            return self.unit
        raise TypeError(f"event {self.tx_hash} carries an identifier, not an amount")


@dataclass(frozen=True)
class ReplayWarning:
    """Anomaly noticed while folding the event history."""

    kind: str  # duplicate-stake | unstake-without-stake | balance-underflow
    key: str
    event: TransferEvent
    detail: str = ""


@dataclass
class HolderEntry:
    """Current owner of one staked identifier."""

    identifier: str
    owner: str
    last_event: Optional[TransferEvent] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner, "identifier": self.identifier}


class NftHolderState:
    """identifier -> HolderEntry. Each identifier has at most one owner."""

    def __init__(self) -> None:
        self._entries: Dict[str, HolderEntry] = {}
        self.warnings: List[ReplayWarning] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NftHolderState):
            return NotImplemented
        return self.owners() == other.owners()

    def get(self, identifier: str) -> Optional[HolderEntry]:
        return self._entries.get(identifier)

    def set(self, identifier: str, owner: str, event: Optional[TransferEvent] = None) -> None:
        self._entries[identifier] = HolderEntry(identifier=identifier, owner=owner, last_event=event)

    def remove(self, identifier: str) -> Optional[HolderEntry]:
        return self._entries.pop(identifier, None)

    def entries(self) -> List[HolderEntry]:
        """Entries ordered by identifier."""

        return [self._entries[k] for k in sorted(self._entries)]

    def owners(self) -> Dict[str, str]:
        return {k: e.owner for k, e in self._entries.items()}


class BalanceState:
    """address -> balance in minor units. Balances are never negative."""

    def __init__(self) -> None:
        self._balances: Dict[str, int] = {}
        self.warnings: List[ReplayWarning] = []

    def __len__(self) -> int:
        return len(self._balances)

    def __contains__(self, address: object) -> bool:
        return address in self._balances

    def __iter__(self) -> Iterator[str]:
        return iter(self._balances)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BalanceState):
            return NotImplemented
        return self._balances == other._balances

    def get(self, address: str) -> int:
        return self._balances.get(address, 0)

    def credit(self, address: str, amount: int) -> None:
        balance = self._balances.get(address, 0) + int(amount)
        if balance:
            self._balances[address] = balance

    def debit(self, address: str, amount: int) -> int:
        """Subtract amount, clamping at zero. Returns the uncovered shortfall."""

        current = self._balances.get(address, 0)
        remaining = current - int(amount)
        shortfall = 0
        if remaining < 0:
            shortfall = -remaining
            remaining = 0
        if remaining == 0:
            self._balances.pop(address, None)
        else:
            self._balances[address] = remaining
        return shortfall

    def total(self) -> int:
        return sum(self._balances.values())

    def balances(self) -> Dict[str, int]:
        return dict(self._balances)


HolderState = Union[NftHolderState, BalanceState]


@dataclass(frozen=True)
class OwnershipStat:
    """Units held by one owner.

    units_count is an int for NFT/SFT and a fixed-point decimal string for ESDT.
    """

    owner: str
    units_count: Union[int, str]

    @property
    def units(self) -> Decimal:
        return Decimal(str(self.units_count))

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner, "tokensCount": self.units_count}


@dataclass(frozen=True)
class WinnerSelection:
    """Distinct winners in draw order."""

    winners: Tuple[Any, ...]
    requested: int
    pool_size: int

    def __len__(self) -> int:
        return len(self.winners)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.winners)


@dataclass
class HolderSnapshot:
    """Engine output: aggregated stats plus the pool winners are drawn from."""

    asset_key: str
    asset_type: AssetType
    stats: List[OwnershipStat]
    pool: Sequence[Any]
    decimals: int = 0
    warnings: List[ReplayWarning] = field(default_factory=list)
    reconciliation: Optional[ReconciliationReport] = None

    @property
    def pool_size(self) -> int:
        return len(self.pool)
