from __future__ import annotations

import argparse
import json
from typing import Dict, List, Optional

from tag_index import SLOTS
from tag_index.errors import StorageError
from tag_index.models import IndexUpdate
from tag_index.service import IndexService
from tag_index.settings import Settings, configure_logging


def parse_deltas(pairs: List[str]) -> Dict[str, int]:
    """
    Parse repeatable key=delta arguments.

    The split is on the last "=", so keys may themselves contain "=".
    """
    deltas: Dict[str, int] = {}
    for pair in pairs:
        key, sep, value = pair.rpartition("=")
        if not sep or not key:
            raise SystemExit(f"❌ Expected key=delta, got: {pair!r}")
        try:
            deltas[key] = deltas.get(key, 0) + int(value)
        except ValueError:
            raise SystemExit(f"❌ Delta must be an integer: {pair!r}")
    return deltas


def cmd_show(args, service: IndexService) -> None:
    result = service.read()
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, sort_keys=True))
        return

    for slot in SLOTS:
        counters = result.cleaned.slot(slot)
        print(f"{slot} ({len(counters)} keys)")
        for key, count in sorted(counters.items(), key=lambda kv: (-kv[1], kv[0])):
            print(f"  {count:>6}  {key}")
    if result.changed:
        print(f"\n🧹 Pruned: {json.dumps(result.removed, sort_keys=True)}")


def cmd_update(args, service: IndexService) -> None:
    update = IndexUpdate(
        tags=parse_deltas(args.tag) or None,
        people=parse_deltas(args.person) or None,
    )
    results = service.update(update)
    for slot in SLOTS:
        r = results[slot]
        if r.skipped:
            print(f"⏭️  {slot}: skipped (no deltas)")
        else:
            counters = r.record.index_keys if r.record else {}
            print(f"✅ {slot}: {json.dumps(counters, sort_keys=True)}")


def main(argv: Optional[List[str]] = None, service: Optional[IndexService] = None) -> None:
    p = argparse.ArgumentParser(prog="tag-index")
    sub = p.add_subparsers(dest="cmd", required=True)

    # show
    s = sub.add_parser("show", help="Show both indexes (prunes non-positive counters)")
    s.add_argument("--json", action="store_true", help="Print the full read result as JSON")
    s.set_defaults(func=cmd_show)

    # update
    u = sub.add_parser("update", help="Increment/decrement index counters")
    u.add_argument("--tag", action="append", default=[], help="key=delta for the tags index (repeatable)")
    u.add_argument("--person", action="append", default=[], help="key=delta for the people index (repeatable)")
    u.set_defaults(func=cmd_update)

    args = p.parse_args(argv)

    if service is None:
        settings = Settings.load()
        configure_logging(settings.LOG_LEVEL)
        service = IndexService.from_settings(settings)

    try:
        args.func(args, service)
    except StorageError as e:
        raise SystemExit(f"❌ Index store error: {e}")

if __name__ == "__main__":
    main()
