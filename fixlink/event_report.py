#!/usr/bin/env python3
import argparse
import json
import re
import sys
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

EVENT_PATTERN = re.compile(r"booking_event=(\{.*\})")


def _iter_lines(paths: List[str]) -> Iterable[str]:
    if not paths:
        for line in sys.stdin:
            yield line.rstrip("\n")
        return
    for path in paths:
        with open(path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                yield line.rstrip("\n")


def parse_event(line: str) -> Optional[Dict[str, Any]]:
    match = EVENT_PATTERN.search(line)
    if not match:
        return None
    try:
        value = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    if not isinstance(value, dict):
        return None
    return value


def build_report(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    event_counts: Counter[str] = Counter()
    transitions: Counter[str] = Counter()
    actor_roles: Counter[str] = Counter()
    ratings: List[int] = []
    revenue = 0.0
    malformed_amounts = 0

    for row in rows:
        event = str(row.get("event", "unknown"))
        event_counts[event] += 1
        actor_roles[str(row.get("actor_role", "unknown"))] += 1
        if event == "created":
            try:
                revenue += float(row.get("total_amount", 0) or 0)
            except (TypeError, ValueError):
                malformed_amounts += 1
        elif event == "status_changed":
            transitions[f"{row.get('from_status', '?')}->{row.get('status', '?')}"] += 1
        elif event == "reviewed" and isinstance(row.get("rating"), int):
            ratings.append(row["rating"])

    created = event_counts.get("created", 0)
    completed = transitions.get("in-progress->completed", 0)
    return {
        "total_events": len(rows),
        "event_counts": dict(event_counts),
        "transition_counts": dict(transitions),
        "actor_role_counts": dict(actor_roles),
        "booked_revenue": round(revenue, 2),
        "malformed_amounts": malformed_amounts,
        "completion_rate": round(completed / created, 4) if created else 0.0,
        "reviews": {
            "count": len(ratings),
            "mean_rating": round(sum(ratings) / len(ratings), 4) if ratings else 0.0,
        },
    }


def print_human(report: Dict[str, Any]) -> None:
    print(f"Total booking events: {report['total_events']}")
    print(f"Booked revenue: {report['booked_revenue']:.2f}")
    if report["malformed_amounts"]:
        print(f"Created events with unreadable total_amount: {report['malformed_amounts']}")
    print(f"Completion rate: {report['completion_rate']:.2%}")
    print("Transitions:")
    for transition, count in sorted(report["transition_counts"].items(), key=lambda x: x[1], reverse=True):
        print(f"  - {transition}: {count}")
    reviews = report["reviews"]
    print(f"Reviews: count={reviews['count']} mean={reviews['mean_rating']:.2f}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize FixLink booking_event logs.")
    parser.add_argument("log_files", nargs="*", help="Log files to parse. If omitted, read stdin.")
    parser.add_argument("--json-out", default="", help="Optional path to write JSON summary.")
    args = parser.parse_args()

    rows = [payload for payload in (parse_event(line) for line in _iter_lines(args.log_files)) if payload]
    report = build_report(rows)
    print_human(report)

    if args.json_out:
        path = Path(args.json_out)
        path.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")
        print(f"Wrote report: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
