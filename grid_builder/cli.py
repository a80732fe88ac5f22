"""
Grid index command line.

Examples:
  # Build only if the content fingerprint changed (build hook form)
  python -m grid_builder.cli build

  # Unconditional full rebuild
  python -m grid_builder.cli rebuild

  # Incremental: explicit files, one region, or every known source
  python -m grid_builder.cli update static/content/campsites/north-america/canada/alberta/foo.md
  python -m grid_builder.cli update --region alberta
  python -m grid_builder.cli update
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import List, Optional

from common.config import default_config_path, load_settings
from common.logging_setup import get_logger, setup_logging
from grid_builder.errors import GridIndexError
from grid_builder.pipeline import run_full_build, run_if_needed, run_incremental, status
from grid_builder.store import GridStore
from grid_builder.updater import IncrementalUpdater

log = get_logger("grid_builder")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="grid-index", description="Hierarchical grid index builder")
    ap.add_argument("--config", default=default_config_path(), help="YAML settings file")
    ap.add_argument("--log-level", default=None, help="Override logging level (DEBUG/INFO/...)")
    sub = ap.add_subparsers(dest="command", required=True)

    p_build = sub.add_parser("build", help="Full build if source content changed")
    p_build.add_argument("--force", action="store_true", help="Build even if the fingerprint is unchanged")

    sub.add_parser("rebuild", help="Unconditional full rebuild")

    p_update = sub.add_parser("update", help="Incremental update of specific sources")
    p_update.add_argument("files", nargs="*", help="Changed source files (.md)")
    p_update.add_argument("--region", default=None, help="Only sources inside a directory with this name")
    p_update.add_argument("--delete", metavar="ID", default=None, help="Not supported; always fails")

    sub.add_parser("status", help="Show fingerprint and cache state")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        setup_logging(args.log_level, force=True)
        log.error("Invalid configuration", extra={"extra": {"config": args.config, "error": str(e)}})
        return 1
    level = args.log_level or os.environ.get("LOG_LEVEL") or settings.logging.level
    setup_logging(level, settings.logging.format, force=True)

    try:
        if args.command == "build":
            run_if_needed(settings, force=args.force)
        elif args.command == "rebuild":
            run_full_build(settings)
        elif args.command == "update":
            if args.delete:
                store = GridStore(settings.build.grid_root, settings.build.minimal_index_path)
                IncrementalUpdater(store, settings.build.zoom_levels).delete(args.delete)
            report = run_incremental(settings, files=args.files, region=args.region)
            if not report.ok:
                log.error("Incremental update had failures", extra={"extra": {"failed": report.failures}})
                return 1
        elif args.command == "status":
            print(json.dumps(status(settings), indent=2))
    except GridIndexError as e:
        log.error("Grid index command failed", extra={"extra": {"command": args.command, "error": str(e)}})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
