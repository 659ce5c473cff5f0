from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .entities import ESDT_TRANSFER_FUNCTION, NFT_TRANSFER_FUNCTION, AssetType
from .errors import UnsupportedProfile


class StakingContractProfile(BaseModel):
    """One supported staking contract.

    Attributes:
        label: Public label callers use to pick the contract.
        contract_address: Bech32 address of the staking contract.
        stake_function_name: Contract-specific function called to stake.
        unstake_function_name: Transfer-back function seen on unstake. When
            unset, the ledger's fixed transfer function for the asset type is used.
    """

    model_config = {"frozen": True}

    label: str = ""
    contract_address: str
    stake_function_name: str
    unstake_function_name: Optional[str] = None

    def unstake_function_for(self, asset_type: AssetType) -> str:
        if self.unstake_function_name:
            return self.unstake_function_name
        if asset_type is AssetType.ESDT:
            return ESDT_TRANSFER_FUNCTION
        return NFT_TRANSFER_FUNCTION


class RateLimitConfig(BaseModel):
    """Token-bucket budget shared by all requests of one operation."""

    requests_per_interval: int = Field(default=2, ge=1)
    interval_seconds: float = Field(default=1.0, gt=0)


class RetryConfig(BaseModel):
    """Capped exponential backoff with jitter for transient failures."""

    max_attempts: int = Field(default=5, ge=1)
    base_delay_seconds: float = Field(default=0.5, ge=0)
    max_delay_seconds: float = Field(default=8.0, ge=0)
    jitter_seconds: float = Field(default=0.25, ge=0)
    respect_retry_after: bool = True


class CollectorConfig(BaseModel):
    transfers_page_size: int = Field(default=1000, ge=1)
    inventory_page_size: int = Field(default=100, ge=1)
    holders_page_size: int = Field(default=1000, ge=1)
    collection_page_size: int = Field(default=100, ge=1)
    workers: Optional[int] = Field(default=None, ge=1)


class SnapshotConfig(BaseModel):
    smart_contract_prefix: str = "erd1qqqqqqqqqqqqq"
    max_esdt_owners: int = Field(default=100_000, ge=1)


class Config(BaseModel):
    """Top-level configuration for the holder reconstruction engine."""

    api_base_url: str = "https://api.multiversx.com"
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    staking_profiles: Dict[str, StakingContractProfile] = Field(default_factory=dict)

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def fill_profile_labels(self) -> "Config":
        # Profiles keyed in YAML usually omit their own label.
        for key, prof in list(self.staking_profiles.items()):
            if prof.label != key:
                self.staking_profiles[key] = prof.model_copy(update={"label": key})
        return self

    @property
    def workers(self) -> int:
        """Worker pool width; defaults to the limiter's per-interval budget."""

        return self.collector.workers or self.rate_limit.requests_per_interval

    def profile(self, label: str) -> StakingContractProfile:
        """Look up a staking profile, failing fast on unknown labels."""

        prof = self.staking_profiles.get(label)
        if prof is None:
            raise UnsupportedProfile(label)
        return prof


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from YAML file, allowing environment overrides.

    Environment variable overrides (optional):
    - STAKESNAP_API_URL replaces api_base_url.
    - STAKESNAP_RATE_LIMIT replaces rate_limit.requests_per_interval.

    Args:
        path: Optional custom path to the YAML config.

    Returns:
        Parsed and validated Config object.
    """

    if path is None:
        path = Path(__file__).with_name("config_defaults.yaml")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    api_url = os.getenv("STAKESNAP_API_URL")
    if api_url:
        data["api_base_url"] = api_url
    rate = os.getenv("STAKESNAP_RATE_LIMIT")
    if rate:
        data.setdefault("rate_limit", {})["requests_per_interval"] = int(rate)

    return Config(**data)


def get_default_config() -> Config:
    """Return a Config loaded from the default YAML file shipped with the package."""

    return load_config()
