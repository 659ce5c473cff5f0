from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config_schema import get_default_config, load_config
from .engine import (
    ReconstructOptions,
    SnapshotOptions,
    draw_winners,
    reconstruct_snapshot,
    snapshot_holders,
)
from .entities import AssetType
from .errors import EmptyResultError, StakeSnapError


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="stakesnap", description="Holder snapshots and winner draws")
    p.add_argument("--config", type=Path, default=None, help="YAML config (packaged defaults if omitted)")
    p.add_argument("--winners", type=int, default=0, help="number of winners to draw")
    p.add_argument("--seed", type=int, default=None, help="seed for a reproducible draw")
    p.add_argument("--timeout", type=float, default=None, help="abort after this many seconds")
    p.add_argument("-v", "--verbose", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    s1 = sub.add_parser("staked", help="Replay a staking contract's history")
    s1.add_argument("asset_key")
    s1.add_argument("--contract", required=True, help="staking profile label")
    s1.add_argument("--type", dest="asset_type", choices=[t.value for t in AssetType], default="nft")
    s1.add_argument("--reconcile", action="store_true", help="cross-check against live inventory")
    s1.add_argument("--decimals", type=int, default=None)

    s2 = sub.add_parser("nft", help="Current owners of an NFT collection")
    s2.add_argument("collection")
    s2.add_argument("--include-smart-contracts", action="store_true")
    s2.add_argument("--trait-type", default=None)
    s2.add_argument("--trait-value", default=None)
    s2.add_argument("--file-names", nargs="*", default=[])

    s3 = sub.add_parser("sft", help="Current holders of SFT editions")
    s3.add_argument("collection")
    s3.add_argument("--editions", required=True, help="comma separated, e.g. 01,02")
    s3.add_argument("--include-smart-contracts", action="store_true")

    s4 = sub.add_parser("esdt", help="Current holders of a fungible token")
    s4.add_argument("token")
    s4.add_argument("--include-smart-contracts", action="store_true")
    s4.add_argument("--decimals", type=int, default=None)

    sub.add_parser("profiles", help="List configured staking contracts")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    logger = logging.getLogger("CLI")
    cfg = load_config(args.config) if args.config else get_default_config()

    if args.cmd == "profiles":
        for label, prof in sorted(cfg.staking_profiles.items()):
            print(f"{label:<24} {prof.contract_address} {prof.stake_function_name}")
        return 0

    try:
        if args.cmd == "staked":
            opts = ReconstructOptions(
                include_reconciliation=args.reconcile,
                decimals=args.decimals,
                timeout_seconds=args.timeout,
            )
            snap = reconstruct_snapshot(args.asset_key, args.contract, AssetType(args.asset_type), opts, cfg)
        else:
            key = args.token if args.cmd == "esdt" else args.collection
            opts = SnapshotOptions(
                include_smart_contracts=args.include_smart_contracts,
                editions=[e.strip() for e in getattr(args, "editions", "").split(",") if e.strip()],
                trait_type=getattr(args, "trait_type", None),
                trait_value=getattr(args, "trait_value", None),
                file_names=getattr(args, "file_names", []),
                decimals=getattr(args, "decimals", None),
                timeout_seconds=args.timeout,
            )
            snap = snapshot_holders(key, AssetType(args.cmd), opts, cfg)
    except EmptyResultError as e:
        logger.error("Not found: %s", e)
        return 2
    except (StakeSnapError, ValueError) as e:
        logger.error("%s", e)
        return 1

    selection = draw_winners(snap.pool, args.winners, args.seed)
    out = {
        "asset_key": snap.asset_key,
        "asset_type": snap.asset_type.value,
        "total_count": snap.pool_size,
        "unique_owner_stats": [s.to_dict() for s in snap.stats],
        "winners": [w.to_dict() for w in selection],
    }
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
