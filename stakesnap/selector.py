from __future__ import annotations

from typing import List, Optional, Sequence, TypeVar, Union

import numpy as np

T = TypeVar("T")


def fisher_yates(pool: Sequence[T], rng: np.random.Generator) -> List[T]:
    """Uniformly shuffled copy of pool (Durstenfeld variant)."""

    items = list(pool)
    for i in range(len(items) - 1, 0, -1):
        j = int(rng.integers(0, i + 1))
        items[i], items[j] = items[j], items[i]
    return items


def select(
    pool: Sequence[T],
    n: int,
    rng: Optional[Union[np.random.Generator, int]] = None,
) -> List[T]:
    """Draw min(n, len(pool)) distinct pool elements uniformly at random.

    Args:
        pool: Candidates; element positions are distinct draws even when values repeat.
        n: Requested sample size (>= 0).
        rng: numpy Generator, or a seed for a fresh one. OS entropy when None.
    """

    if n < 0:
        raise ValueError("n must be >= 0")
    if not isinstance(rng, np.random.Generator):
        rng = np.random.default_rng(rng)
    return fisher_yates(pool, rng)[: min(n, len(pool))]
