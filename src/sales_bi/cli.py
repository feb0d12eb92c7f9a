"""CLI wrapper for the executive dashboard pipeline.

Runs one dashboard request against the configured item store and prints
the JSON response. All pipeline logic lives in sales_bi.api.

Examples:
    sales-bi --from 2025-11-01 --to 2025-11-30 --division Electronics -v
    BI_ITEMS_BASE=http://host:8060 python -m sales_bi.cli --from 2025-11-01
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import replace

from sales_bi.api import get_executive_dashboard
from sales_bi.assemble import error_payload
from sales_bi.config import SourceConfig
from sales_bi.exceptions import SalesBIError
from sales_bi.marts.views import PeriodComparison


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Build the executive sales dashboard as JSON.")
    p.add_argument("--from", dest="from_date", help="Start date YYYY-MM-DD (inclusive)")
    p.add_argument("--to", dest="to_date", help="End date YYYY-MM-DD (inclusive)")
    p.add_argument("--division", default="all", help="Division name or 'all' (default: all)")
    p.add_argument("--branch", help="Branch name (reserved, echoed only)")
    p.add_argument(
        "--base-url",
        help="Item store base URL. Defaults to BI_ITEMS_BASE.",
    )
    p.add_argument(
        "--growth",
        type=float,
        default=0.0,
        help="Growth vs previous period to report in the KPI block (default: 0)",
    )
    p.add_argument(
        "--collection-rate",
        type=float,
        default=0.0,
        help="Collection rate to report in the KPI block (default: 0)",
    )
    p.add_argument(
        "--targets",
        help='JSON object of salesman id -> target, e.g. \'{"12": 500000}\'',
    )
    p.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return p


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        raw_targets = json.loads(args.targets) if args.targets else None
        if raw_targets is not None and not isinstance(raw_targets, dict):
            raise ValueError("--targets must be a JSON object")
        targets = {str(k): float(v) for k, v in raw_targets.items()} if raw_targets else None
    except (ValueError, TypeError) as e:
        print(json.dumps(error_payload("Invalid arguments", str(e))), file=sys.stderr)
        return 2

    try:
        config = SourceConfig.from_env()
        if args.base_url:
            config = replace(config, base_url=args.base_url)
        response = get_executive_dashboard(
            args.from_date,
            args.to_date,
            args.division,
            args.branch,
            config=config,
            comparison=PeriodComparison(args.growth, args.collection_rate),
            targets=targets,
        )
    except SalesBIError as e:
        logging.error("Pipeline failed: %s", e)
        print(json.dumps(error_payload("Failed to build sales dashboard", str(e))), file=sys.stderr)
        return 1

    print(json.dumps(response, indent=args.indent, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
