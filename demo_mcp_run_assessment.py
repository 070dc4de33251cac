# demo_mcp_run_assessment.py
# Version: v1
#
# Demo: run the readiness assessment task directly and print the findings.
#
# Usage (PowerShell):
#
#   $env:PBI_MOCK_MODE = "1"        # or set PBI_TENANT_ID / PBI_CLIENT_ID / PBI_CLIENT_SECRET
#   python demo_mcp_run_assessment.py

import asyncio
from typing import Any, Dict, List

from pbi_readiness_mcp.tools import tasks


def _print_section(title: str, findings: List[Dict[str, Any]]) -> None:
    print(f"\n{title} ({len(findings)})")
    for f in findings:
        print(f"- [{f.get('rule')}] {f.get('message')}")


async def main() -> None:
    print("Calling MCP task: run_readiness_assessment()")
    result: Dict[str, Any] = await tasks.run_readiness_assessment()

    if not result.get("ok"):
        print("Assessment failed:", result.get("error"))
        return

    print(result.get("summary"))

    findings = result.get("findings", {})
    _print_section("Blockers", findings.get("blockers", []))
    _print_section("Warnings", findings.get("warnings", []))
    _print_section("Informational", findings.get("infos", []))

    skipped = result.get("skipped_models", [])
    if skipped:
        print(f"\nSkipped semantic models ({len(skipped)})")
        for s in skipped:
            print(f"- {s.get('name')} (id={s.get('dataset_id')}): {s.get('reason')}")

    if result.get("skipped_workspaces"):
        print("\nSkipped workspaces:", ", ".join(result["skipped_workspaces"]))


if __name__ == "__main__":
    asyncio.run(main())
