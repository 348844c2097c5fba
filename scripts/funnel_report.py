"""
Print the visitor funnel: how many visitors sit in each lifecycle state, and
who still needs a follow-up.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.visitor import VisitorState
from services.container import build_lifecycle_service


def funnel_report():
    service = build_lifecycle_service()
    stats = service.stats()

    print("=" * 50)
    print("FIRST-TIMER FUNNEL")
    print("=" * 50)
    for state in VisitorState:
        print(f"{state.value:<25}{stats.by_state[state]}")
    print("-" * 50)
    print(f"Total visitors:           {stats.total}")
    print(f"Converted to members:     {stats.converted}")
    print(f"Open and unassigned:      {stats.unassigned}")
    print(f"Conversion rate:          {(stats.converted / stats.total * 100):.1f}%" if stats.total > 0 else "N/A")
    print("=" * 50)

    due = service.list_needing_follow_up()
    print(f"\nNeeding follow-up ({len(due)}):")
    print("-" * 50)
    for snapshot in due:
        caretaker = snapshot.assigned_to or "unassigned"
        print(f"{snapshot.full_name:<30}{caretaker}")
    print("-" * 50)


if __name__ == "__main__":
    funnel_report()
