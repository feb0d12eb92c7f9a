"""Example: Aggregate records already on hand

This example skips the network and feeds raw collections straight into the
core and marts layers, e.g. to inspect an exported snapshot.

Prerequisites:
- A JSON file per collection, each shaped like the item store response:
  {"data": [...]}
"""

import json
from pathlib import Path

from sales_bi.api import build_view
from sales_bi.assemble import to_response
from sales_bi.marts.filters import SalesFilter
from sales_bi.raw.extract import ALL_SOURCES, SourceResult

snapshot_dir = Path("snapshot")  # MODIFY AS NEEDED

sources = {}
for name in ALL_SOURCES:
    path = snapshot_dir / f"{name}.json"
    if path.exists():
        records = json.loads(path.read_text(encoding="utf-8"))["data"]
        sources[name] = SourceResult.success(name, records)
    else:
        print(f"Missing {path}; treating {name} as unavailable")
        sources[name] = SourceResult.degraded(name, "snapshot file missing")

sales_filter = SalesFilter.from_params("2025-11-01", "2025-11-30", division="all")
view = build_view(sources, sales_filter)
print(json.dumps(to_response(view, sales_filter=sales_filter, sources=sources), indent=2))
