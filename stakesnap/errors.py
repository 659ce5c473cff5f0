"""Error types raised by the holder reconstruction engine."""

from __future__ import annotations

from typing import Optional


class StakeSnapError(Exception):
    """Base class for all engine errors."""


class FetchError(StakeSnapError):
    """Upstream request failed.

    Attributes:
        url: Requested URL.
        status: HTTP status code, or None for network-level failures.
        message: Short description of the failure.
    """

    def __init__(self, url: str, status: Optional[int], message: str) -> None:
        self.url = url
        self.status = status
        self.message = message
        super().__init__(f"{url}: HTTP {status if status is not None else '-'} {message}")


class TransientFetchError(FetchError):
    """HTTP 429/5xx or network error. Retried inside the fetcher."""

    def __init__(
        self,
        url: str,
        status: Optional[int],
        message: str,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(url, status, message)
        self.retry_after = retry_after


class FetchExhausted(FetchError):
    """Retry budget spent; carries the last status/message seen."""

    def __init__(self, url: str, status: Optional[int], message: str, attempts: int) -> None:
        super().__init__(url, status, message)
        self.attempts = attempts

    def __str__(self) -> str:
        return f"{super().__str__()} (gave up after {self.attempts} attempts)"


class OperationTimeout(StakeSnapError):
    """Caller-supplied deadline elapsed before collection finished."""


class UnsupportedProfile(StakeSnapError, KeyError):
    """Unknown staking contract label."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(label)

    def __str__(self) -> str:
        return f"Unsupported staking contract label: {self.label!r}"


class EmptyResultError(StakeSnapError, LookupError):
    """No holders left after replay and filtering ("not found")."""

    def __init__(self, asset_key: str, detail: str = "no holders found") -> None:
        self.asset_key = asset_key
        self.detail = detail
        super().__init__(f"{asset_key}: {detail}")


class ReconciliationMismatch(StakeSnapError):
    """Replayed state disagrees with the live inventory.

    Non-fatal: the reconciler builds and logs one of these but never raises it.
    """

    def __init__(self, asset_key: str, replayed: int, live: int) -> None:
        self.asset_key = asset_key
        self.replayed = replayed
        self.live = live
        super().__init__(
            f"{asset_key}: replayed total {replayed} != live total {live} "
            f"(diff {replayed - live:+d})"
        )
