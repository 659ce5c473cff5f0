"""Staked and held asset snapshot engine for MultiversX.

This package reconstructs who currently holds an asset from the ledger's
transaction history and draws random winners from that holder set. It
includes:

- Config schema and defaults (staking contract profiles, rate/retry budgets)
- Rate-limited, retrying HTTP fetcher and offset-paginated collector
- Event normalization of raw transfer records
- Ordered replay of stake/unstake history into holder state
- Optional reconciliation against the contract's live inventory
- Per-owner aggregation and unbiased winner selection
- Live holder snapshots for NFTs, SFTs and fungible tokens
- FastAPI server endpoints and a CLI wrapper

The engine keeps no state between calls: every request replays the full
observable history.
"""

__all__ = [
    "config_schema",
    "entities",
    "errors",
    "collector",
    "normalizer",
    "replay",
    "reconcile",
    "aggregate",
    "selector",
    "snapshots",
    "engine",
]
