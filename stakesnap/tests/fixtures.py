from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config_schema import Config, RateLimitConfig, RetryConfig, StakingContractProfile
from ..entities import NFT_TRANSFER_FUNCTION, TransferEvent
from ..io_connectors.fetcher import RateLimitedFetcher

CONTRACT = "erd1qqqqqqqqqqqqqpgqstakingcontract000000000000000000000000000"
STAKE_FN = "userStake"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.reason = "OK" if status_code < 400 else "Error"

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Stands in for requests.Session; routes GETs to a handler(url, params)."""

    def __init__(self, handler: Callable[[str, Dict[str, Any]], FakeResponse]) -> None:
        self.handler = handler
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._lock = threading.Lock()

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> FakeResponse:
        params = dict(params or {})
        with self._lock:
            self.calls.append((url, params))
        return self.handler(url, params)


def scripted(responses: List[Any]) -> Callable[[str, Dict[str, Any]], FakeResponse]:
    """Handler returning (or raising) the given items in order."""

    items = list(responses)
    lock = threading.Lock()

    def _handler(url: str, params: Dict[str, Any]) -> FakeResponse:
        with lock:
            item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, Exception):
            raise item
        return item

    return _handler


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.slept: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += seconds


def make_fetcher(session: FakeSession, max_attempts: int = 3, sleep: Callable[[float], None] = lambda s: None) -> RateLimitedFetcher:
    return RateLimitedFetcher(
        rate_limit=RateLimitConfig(requests_per_interval=1000, interval_seconds=1.0),
        retry=RetryConfig(max_attempts=max_attempts, base_delay_seconds=0.01, jitter_seconds=0.0),
        session=session,
        sleep=sleep,
    )


def make_profile() -> StakingContractProfile:
    return StakingContractProfile(label="testStake", contract_address=CONTRACT, stake_function_name=STAKE_FN)


def make_config(**overrides: Any) -> Config:
    data: Dict[str, Any] = {
        "api_base_url": "https://api.test",
        "rate_limit": {"requests_per_interval": 1000, "interval_seconds": 1.0},
        "retry": {"max_attempts": 2, "base_delay_seconds": 0.0, "jitter_seconds": 0.0},
        # Tiny pages so a handful of records spans several requests.
        "collector": {
            "workers": 2,
            "transfers_page_size": 2,
            "inventory_page_size": 2,
            "holders_page_size": 2,
            "collection_page_size": 2,
        },
        "staking_profiles": {
            "testStake": {"contract_address": CONTRACT, "stake_function_name": STAKE_FN},
        },
    }
    data.update(overrides)
    return Config(**data)


def stake(unit: Any, sender: str, ts: int, nonce: int = 0, tx: Optional[str] = None) -> TransferEvent:
    return TransferEvent(
        tx_hash=tx or f"stake-{unit}-{sender}-{ts}-{nonce}",
        timestamp=ts,
        nonce=nonce,
        function_name=STAKE_FN,
        sender=sender,
        receiver=CONTRACT,
        status="success",
        asset_key="COLL-abcdef",
        unit=unit,
    )


def unstake(unit: Any, receiver: str, ts: int, nonce: int = 0, function: str = NFT_TRANSFER_FUNCTION) -> TransferEvent:
    return TransferEvent(
        tx_hash=f"unstake-{unit}-{receiver}-{ts}-{nonce}",
        timestamp=ts,
        nonce=nonce,
        function_name=function,
        sender=CONTRACT,
        receiver=receiver,
        status="success",
        asset_key="COLL-abcdef",
        unit=unit,
    )


def raw_tx(
    function: str,
    sender: str,
    receiver: str,
    transfers: List[Dict[str, Any]],
    ts: int = 1,
    nonce: int = 0,
    status: str = "success",
    tx_hash: str = "h",
) -> Dict[str, Any]:
    """Raw record shaped like /accounts/{addr}/transfers output."""

    return {
        "txHash": tx_hash,
        "timestamp": ts,
        "nonce": nonce,
        "sender": sender,
        "receiver": receiver,
        "function": function,
        "status": status,
        "action": {"arguments": {"transfers": transfers}},
    }


def api_router(routes: Dict[str, Any]) -> Callable[[str, Dict[str, Any]], FakeResponse]:
    """Handler serving canned API payloads keyed by URL path.

    A value may be a FakeResponse, a callable(params) -> payload, or a plain
    payload. List payloads are sliced by the ``from``/``size`` params.
    """

    def _handler(url: str, params: Dict[str, Any]) -> FakeResponse:
        path = url.split("://", 1)[-1].split("/", 1)[-1]
        if path not in routes:
            return FakeResponse(404, {"message": f"no route {path}"})
        value = routes[path]
        if isinstance(value, FakeResponse):
            return value
        if callable(value):
            value = value(params)
        if isinstance(value, list) and "from" in params:
            start = int(params["from"])
            value = value[start : start + int(params["size"])]
        return FakeResponse(200, value)

    return _handler
