"""Live holder listings for assets that are held directly (not staked).

These read current ownership straight from the API's holder endpoints, so no
replay is involved; they share the fetcher, collector and aggregation rules
with the staking engine.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .io_connectors.multiversx import MultiversXClient

logger = logging.getLogger(__name__)

DEFAULT_SC_PREFIX = "erd1qqqqqqqqqqqqq"


def is_smart_contract_address(address: Any, prefix: str = DEFAULT_SC_PREFIX) -> bool:
    """Smart-contract addresses on MultiversX share a long run of leading zero bytes."""

    return isinstance(address, str) and address.startswith(prefix)


def metadata_file_name(attributes: Optional[str]) -> str:
    """Extract the metadata file stem from base64 NFT attributes.

    "tags:a,b;metadata:QmCid/42.json" -> "42". Empty string when absent.
    """

    if not attributes:
        return ""
    try:
        decoded = base64.b64decode(attributes).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""
    entry = next((part for part in decoded.split(";") if "metadata" in part), None)
    if not entry or "/" not in entry:
        return ""
    return entry.split("/", 1)[1].split(".")[0]


@dataclass
class NftHolding:
    owner: str
    identifier: str
    metadata_file_name: str = ""
    attributes: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "identifier": self.identifier,
            "metadataFileName": self.metadata_file_name,
        }


@dataclass
class BalanceHolding:
    address: str
    balance: int

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "balance": str(self.balance)}


def _nft_holding(item: Dict[str, Any]) -> NftHolding:
    metadata = item.get("metadata") or {}
    attrs = metadata.get("attributes") if isinstance(metadata, dict) else None
    return NftHolding(
        owner=item.get("owner"),
        identifier=item.get("identifier"),
        metadata_file_name=metadata_file_name(item.get("attributes")),
        attributes=list(attrs) if isinstance(attrs, list) else [],
    )


def fetch_nft_holders(
    client: MultiversXClient,
    collection: str,
    include_smart_contracts: bool = False,
    deadline: Optional[float] = None,
) -> List[NftHolding]:
    """Current owner of every NFT in a collection."""

    total = client.collection_nft_count(collection, deadline=deadline)
    items = client.collection_nfts(collection, total=total, deadline=deadline)
    prefix = client.cfg.snapshot.smart_contract_prefix
    out: List[NftHolding] = []
    for item in items:
        holding = _nft_holding(item)
        if not isinstance(holding.owner, str):
            continue
        if not include_smart_contracts and is_smart_contract_address(holding.owner, prefix):
            continue
        out.append(holding)
    logger.info("Collected %d/%d NFT holdings for %s", len(out), total, collection)
    return out


def filter_nft_holdings(
    holdings: Iterable[NftHolding],
    trait_type: Optional[str] = None,
    trait_value: Optional[str] = None,
    file_names: Optional[Sequence[str]] = None,
) -> List[NftHolding]:
    """Keep holdings matching a trait and/or a list of metadata file names."""

    out = list(holdings)
    if trait_type and trait_value:
        out = [
            h
            for h in out
            if any(
                isinstance(a, dict) and a.get("trait_type") == trait_type and a.get("value") == trait_value
                for a in h.attributes
            )
        ]
    if file_names:
        wanted = set(file_names)
        out = [h for h in out if h.metadata_file_name in wanted]
    return out


def _balances(
    rows: Iterable[Dict[str, Any]], include_smart_contracts: bool, prefix: str
) -> List[BalanceHolding]:
    out: List[BalanceHolding] = []
    for row in rows:
        address = row.get("address")
        if not isinstance(address, str):
            continue
        if not include_smart_contracts and is_smart_contract_address(address, prefix):
            continue
        try:
            balance = int(str(row.get("balance") or 0))
        except ValueError:
            logger.warning("Skipping holder %s with unparseable balance %r", address, row.get("balance"))
            continue
        out.append(BalanceHolding(address=address, balance=balance))
    return out


def fetch_sft_holders(
    client: MultiversXClient,
    collection: str,
    editions: Sequence[str],
    include_smart_contracts: bool = False,
    deadline: Optional[float] = None,
) -> List[BalanceHolding]:
    """Holders of the given SFT editions (nonce suffixes like "01")."""

    prefix = client.cfg.snapshot.smart_contract_prefix
    out: List[BalanceHolding] = []
    for edition in editions:
        identifier = f"{collection}-{edition.strip()}"
        rows = client.nft_accounts(identifier, deadline=deadline)
        out.extend(_balances(rows, include_smart_contracts, prefix))
    return out


def fetch_esdt_holders(
    client: MultiversXClient,
    token: str,
    include_smart_contracts: bool = False,
    deadline: Optional[float] = None,
) -> List[BalanceHolding]:
    """Holders of a fungible token, one row per address, capped by config.

    Paging stops as soon as the cap is reached.
    """

    prefix = client.cfg.snapshot.smart_contract_prefix
    cap = client.cfg.snapshot.max_esdt_owners
    unique: Dict[str, BalanceHolding] = {}

    def _take(page: List[Dict[str, Any]]) -> bool:
        for holding in _balances(page, include_smart_contracts, prefix):
            unique[holding.address] = holding
            if len(unique) >= cap:
                return True
        return False

    client.token_accounts(token, deadline=deadline, stop=_take)
    if len(unique) >= cap:
        logger.warning("Reached %d unique owners of %s; ignoring the rest", cap, token)
    return list(unique.values())
