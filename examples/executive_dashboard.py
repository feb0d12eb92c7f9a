"""Example: Executive dashboard for one month

This example runs the full pipeline (fetch -> normalize -> aggregate) against
an item store and prints the headline figures.

Prerequisites:
- Set BI_ITEMS_BASE environment variable (e.g. http://localhost:8060)
- Optionally set BI_ACCESS_TOKEN if the item store requires authentication
"""

from sales_bi import SourceConfig, get_executive_dashboard
from sales_bi.marts.views import PeriodComparison

month_start = "2025-11-01"  # MODIFY AS NEEDED
month_end = "2025-11-30"  # MODIFY AS NEEDED

config = SourceConfig.from_env()

print(f"Building dashboard for {month_start} to {month_end}...")
resp = get_executive_dashboard(
    month_start,
    month_end,
    division="all",
    config=config,
    comparison=PeriodComparison(growth_vs_previous=0.0, collection_rate=0.0),
)

kpi = resp["kpi"]
print(f"Total net sales: {kpi['totalNetSales']:,.2f}")
print(f"Gross margin:    {kpi['grossMargin']:.1f}%")

degraded = [name for name, s in resp["sources"].items() if s["status"] != "ok"]
if degraded:
    print(f"\nWarning: reference data unavailable for {', '.join(degraded)}")

print("\nNet sales by division:")
for row in resp["divisionSales"]:
    print(f"  {row['division']:<20} {row['netSales']:>14,.2f}")

print("\nTop customers:")
for row in resp["topCustomers"]:
    print(f"  {row['rank']:>2}. {row['customerName']:<30} {row['netSales']:>14,.2f}")
