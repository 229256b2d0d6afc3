#!/usr/bin/env python3
"""Render the SQL filter produced for a policy engine compile response."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from hoh_gitops.authorizer.hub_of_hubs import MANAGED_CLUSTERS_TABLE  # noqa: E402
from hoh_gitops.authorizer.predicate import translate_result  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "response",
        type=Path,
        nargs="?",
        help="File holding the /v1/compile JSON response (stdin when omitted)",
    )
    parser.add_argument(
        "--query",
        action="store_true",
        help="Print the full entitlement query instead of the bare predicate",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    raw = args.response.read_text() if args.response else sys.stdin.read()
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as exc:
        print(f"invalid compile response: {exc}", file=sys.stderr)
        return 1

    predicate = translate_result(body.get("result") if isinstance(body, dict) else None)
    if args.query:
        print(
            "SELECT leaf_hub_name, payload -> 'metadata' ->> 'name' "
            f"FROM status.{MANAGED_CLUSTERS_TABLE} WHERE TRUE AND ({predicate})"
        )
    else:
        print(predicate)
    return 0


if __name__ == "__main__":
    sys.exit(main())
