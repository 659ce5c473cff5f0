from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class StakedDrawRequest(BaseModel):
    asset_key: str = Field(..., description="Collection ticker or token identifier")
    contract_label: str
    asset_type: str = Field(default="nft", pattern="^(nft|sft|esdt)$")
    number_of_winners: int = Field(..., ge=0)
    include_reconciliation: bool = False
    decimals: Optional[int] = Field(default=None, ge=0)


class NftDrawRequest(BaseModel):
    collection_ticker: str
    number_of_winners: int = Field(..., ge=0)
    include_smart_contracts: bool = False
    trait_type: Optional[str] = None
    trait_value: Optional[str] = None
    file_names_list: List[str] = Field(default_factory=list)


class SftDrawRequest(BaseModel):
    collection_ticker: str
    editions: str = Field(..., description="Comma separated edition nonces, e.g. '01,02'")
    number_of_winners: int = Field(..., ge=0)
    include_smart_contracts: bool = False


class EsdtDrawRequest(BaseModel):
    token: str
    number_of_winners: int = Field(..., ge=0)
    include_smart_contracts: bool = False


class OwnerStatOut(BaseModel):
    owner: str
    tokensCount: Any


class ReconciliationOut(BaseModel):
    dropped: List[str] = Field(default_factory=list)
    replayed_total: int = 0
    live_total: int = 0
    mismatch: Optional[str] = None


class DrawResponse(BaseModel):
    asset_key: str
    asset_type: str
    winners: List[Dict[str, Any]]
    unique_owner_stats: List[OwnerStatOut]
    total_count: int
    decimals: int = 0
    warnings: List[str] = Field(default_factory=list)
    reconciliation: Optional[ReconciliationOut] = None
    message: str
