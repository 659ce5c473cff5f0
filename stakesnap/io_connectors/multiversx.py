"""MultiversX public API endpoints used by the engine."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from ..collector import PaginatedCollector
from ..config_schema import Config
from ..entities import STATUS_SUCCESS
from ..errors import FetchError, OperationTimeout
from .fetcher import RateLimitedFetcher


class MultiversXClient:
    """Thin endpoint wrapper; one instance (and one rate limiter) per operation."""

    def __init__(
        self,
        cfg: Config,
        fetcher: Optional[RateLimitedFetcher] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cfg = cfg
        self.base_url = cfg.api_base_url
        self.fetcher = fetcher or RateLimitedFetcher(
            rate_limit=cfg.rate_limit,
            retry=cfg.retry,
            timeout=cfg.request_timeout_seconds,
            session=session,
        )
        self.collector = PaginatedCollector(self.fetcher, workers=cfg.workers)
        self.logger = logging.getLogger(self.__class__.__name__)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _get(self, url: str, deadline: Optional[float] = None) -> Any:
        if deadline is not None and time.monotonic() >= deadline:
            raise OperationTimeout(f"deadline elapsed before requesting {url}")
        return self.fetcher.fetch(url)

    # ---- transaction history ----

    def account_transfers(
        self,
        address: str,
        token: str,
        function: str,
        deadline: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """All successful transfers of token through address for one function."""

        return self.collector.collect_all(
            self._url(f"accounts/{address}/transfers"),
            page_size=self.cfg.collector.transfers_page_size,
            params={"token": token, "status": STATUS_SUCCESS, "function": function},
            deadline=deadline,
        )

    # ---- live inventory ----

    def account_nfts(
        self, address: str, collection: str, deadline: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """NFT/SFT items of a collection currently held by address."""

        return self.collector.collect_all(
            self._url(f"accounts/{address}/nfts"),
            page_size=self.cfg.collector.inventory_page_size,
            params={"collections": collection},
            deadline=deadline,
        )

    def account_token_balance(self, address: str, token: str, deadline: Optional[float] = None) -> int:
        """Fungible balance of token held by address, in minor units.

        The API answers 404 when the account holds none of the token; that
        is a zero balance, not a failure.
        """

        url = self._url(f"accounts/{address}/tokens/{token}")
        try:
            data = self._get(url, deadline)
        except FetchError as e:
            if e.status == 404:
                return 0
            raise
        try:
            return int(data.get("balance") or 0)
        except (AttributeError, TypeError, ValueError) as e:
            raise FetchError(url, None, f"unexpected token balance payload: {data!r}") from e

    # ---- metadata ----

    def token_decimals(self, token: str, deadline: Optional[float] = None) -> int:
        url = self._url(f"tokens/{token}")
        data = self._get(url, deadline)
        if not isinstance(data, dict):
            raise FetchError(url, None, "unexpected token metadata payload")
        return int(data.get("decimals") or 0)

    def collection_nft_count(self, collection: str, deadline: Optional[float] = None) -> int:
        url = self._url(f"collections/{collection}/nfts/count")
        data = self._get(url, deadline)
        try:
            return int(data)
        except (TypeError, ValueError) as e:
            raise FetchError(url, None, f"unexpected count payload: {data!r}") from e

    # ---- holder listings ----

    def collection_nfts(
        self, collection: str, total: int, deadline: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """Every NFT of a collection together with its current owner."""

        return self.collector.collect_all(
            self._url(f"collections/{collection}/nfts"),
            page_size=self.cfg.collector.collection_page_size,
            params={"withOwner": "true"},
            total=total,
            deadline=deadline,
        )

    def nft_accounts(self, identifier: str, deadline: Optional[float] = None) -> List[Dict[str, Any]]:
        """Holders of one SFT edition with their balances."""

        return self.collector.collect_all(
            self._url(f"nfts/{identifier}/accounts"),
            page_size=self.cfg.collector.holders_page_size,
            deadline=deadline,
        )

    def token_accounts(
        self,
        token: str,
        deadline: Optional[float] = None,
        stop: Optional[Callable[[List[Any]], bool]] = None,
    ) -> List[Dict[str, Any]]:
        """Holders of a fungible token with their balances.

        stop is handed each page in offset order; once it returns True no
        further pages are requested.
        """

        return self.collector.collect_all(
            self._url(f"tokens/{token}/accounts"),
            page_size=self.cfg.collector.holders_page_size,
            deadline=deadline,
            stop=stop,
        )
