# demo_mcp_list_workspaces.py
# Version: v1
#
# Demo: call the MCP-style list_workspaces task directly and print results.
#
# Usage (PowerShell):
#
#   $env:PBI_MOCK_MODE = "1"
#   python demo_mcp_list_workspaces.py

import asyncio
from typing import Any, Dict, List

from pbi_readiness_mcp.tools import tasks


async def main() -> None:
    print("Calling MCP task: list_workspaces(limit=50)")
    result: Dict[str, Any] = await tasks.list_workspaces(limit=50)

    workspaces: List[Dict[str, Any]] = result.get("workspaces", [])
    print(f"Workspaces returned: {len(workspaces)}")

    if not workspaces:
        print("No workspaces returned.", result.get("error") or "")
        return

    for w in workspaces:
        print(f"- {w.get('name')} (id={w.get('id')})  state={w.get('state')!r}  capacity={w.get('capacity_id')!r}")


if __name__ == "__main__":
    asyncio.run(main())
