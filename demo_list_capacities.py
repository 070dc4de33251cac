# demo_list_capacities.py
# Version: v1

r"""
Quick smoke test: list capacities through the admin API client.

Run with virtualenv active and env vars loaded:
  $env:PBI_TENANT_ID = "..."; $env:PBI_CLIENT_ID = "..."; $env:PBI_CLIENT_SECRET = "..."
  python demo_list_capacities.py
"""

import asyncio

from pbi_readiness_mcp.auth import OAuthClient
from pbi_readiness_mcp.client import PowerBIAdminClient
from pbi_readiness_mcp.config import ReadinessConfig
from pbi_readiness_mcp.discovery import discover_capacities


async def main() -> None:
    cfg = ReadinessConfig.from_env()
    oauth = OAuthClient(config=cfg)
    client = PowerBIAdminClient(config=cfg, oauth=oauth)

    capacities, result = await discover_capacities(client, cfg)
    print(f"Capacities returned: {len(capacities) - 1} (status={result.status.value}, pages={result.pages})")

    for c in capacities:
        print(f"- {c.name} (id={c.id}, sku={c.sku}, region={c.region})")


if __name__ == "__main__":
    asyncio.run(main())
