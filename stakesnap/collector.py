from __future__ import annotations

import logging
import math
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, List, Optional

from .errors import FetchError, OperationTimeout
from .io_connectors.fetcher import RateLimitedFetcher


class PaginatedCollector:
    """Fetch every page of an offset-paginated collection.

    Pages are requested at offsets 0, size, 2*size, ... through a fixed-width
    worker pool. Ordering of the result follows page offsets; callers that
    care about chronology sort explicitly afterwards.
    """

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        workers: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.fetcher = fetcher
        self.workers = max(1, workers or fetcher.concurrency)
        self._clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

    def _remaining(self, deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        left = deadline - self._clock()
        if left <= 0:
            raise OperationTimeout("deadline elapsed during collection")
        return left

    def _fetch_page(self, url: str, params: Dict[str, Any], offset: int, page_size: int) -> List[Any]:
        page_params = dict(params)
        page_params["from"] = offset
        page_params["size"] = page_size
        data = self.fetcher.fetch(url, page_params)
        if not isinstance(data, list):
            raise FetchError(url, None, f"expected a list page at offset {offset}, got {type(data).__name__}")
        return data

    def _gather(
        self,
        pool: ThreadPoolExecutor,
        url: str,
        params: Dict[str, Any],
        offsets: List[int],
        page_size: int,
        deadline: Optional[float],
    ) -> List[List[Any]]:
        futures: List[Future] = [
            pool.submit(self._fetch_page, url, params, off, page_size) for off in offsets
        ]
        pages: List[List[Any]] = []
        try:
            for fut in futures:
                try:
                    pages.append(fut.result(timeout=self._remaining(deadline)))
                except FuturesTimeoutError as e:
                    raise OperationTimeout("deadline elapsed during collection") from e
        except BaseException:
            for fut in futures:
                fut.cancel()
            raise
        return pages

    def collect_all(
        self,
        url: str,
        page_size: int,
        params: Optional[Dict[str, Any]] = None,
        total: Optional[int] = None,
        deadline: Optional[float] = None,
        stop: Optional[Callable[[List[Any]], bool]] = None,
    ) -> List[Any]:
        """Collect all records of a paginated endpoint.

        Args:
            url: Endpoint URL; pagination goes in the ``from``/``size`` query params.
            page_size: Records per page. A shorter page marks the end of data.
            params: Extra query parameters sent with every page.
            total: Known record count (from a count endpoint). When given,
                exactly ceil(total / page_size) pages are fetched.
            deadline: Monotonic time after which the collection is abandoned.
            stop: Called with each page in offset order. Returning True ends
                the collection after that page; later pages of the current
                wave are discarded and no further wave is requested.

        Returns:
            All records in page-offset order.

        Raises:
            FetchExhausted / FetchError: any page failed; nothing is returned.
            OperationTimeout: deadline elapsed.
        """

        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        params = dict(params or {})
        records: List[Any] = []
        pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="collect")
        try:
            if total is not None:
                n_pages = math.ceil(max(0, total) / page_size)
                offsets = [i * page_size for i in range(n_pages)]
                for page in self._gather(pool, url, params, offsets, page_size, deadline):
                    records.extend(page)
                    if stop is not None and stop(page):
                        break
            else:
                offset = 0
                done = False
                while not done:
                    self._remaining(deadline)
                    offsets = [offset + i * page_size for i in range(self.workers)]
                    pages = self._gather(pool, url, params, offsets, page_size, deadline)
                    for page in pages:
                        records.extend(page)
                        if (stop is not None and stop(page)) or len(page) < page_size:
                            done = True
                            break
                    offset = offsets[-1] + page_size
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        self.logger.debug("Collected %d records from %s", len(records), url)
        return records
