"""
Reconcile unconfirmed integrations.

For every visitor still ReadyForIntegration, looks for a member record that links
back to it (left behind by an integration whose confirmation was lost) and, if one
exists, completes the Integrate transition with it. Never creates members.

Usage:
    python scripts/reconcile_integrations.py [--dry-run]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import VisitorWorkflowError
from services.container import build_lifecycle_service

logger = logging.getLogger("reconcile_integrations")


def reconcile(dry_run: bool = False) -> dict[str, int]:
    service = build_lifecycle_service()
    summary = {"checked": 0, "completed": 0, "pending": 0, "failed": 0}

    for snapshot in service.list_ready_for_integration():
        summary["checked"] += 1
        if dry_run:
            print(f"  would re-check {snapshot.visitor_id} ({snapshot.full_name})")
            continue
        try:
            result = service.recheck_integration(snapshot.visitor_id)
        except VisitorWorkflowError as exc:
            summary["failed"] += 1
            logger.warning(f"Re-check failed for {snapshot.visitor_id}: {exc}")
            continue

        if result is None:
            summary["pending"] += 1
        else:
            summary["completed"] += 1
            print(f"  linked {snapshot.visitor_id} -> member {result.visitor.member_record_ref}")

    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Complete integrations whose member record already exists")
    parser.add_argument("--dry-run", action="store_true", help="List candidates without changing anything")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    summary = reconcile(dry_run=args.dry_run)

    print("=" * 50)
    print("INTEGRATION RECONCILIATION")
    print("=" * 50)
    print(f"Visitors checked:          {summary['checked']}")
    print(f"Completed from existing:   {summary['completed']}")
    print(f"Still awaiting integrate:  {summary['pending']}")
    print(f"Failed (see log):          {summary['failed']}")
    print("=" * 50)

    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
