"""Command line interface for offline archive tooling."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import ArchiverConfig, load_config
from .errors import ConfigError
from .inspection import inspect_archive, verify_archive
from .logging import configure_logging, step
from .reader import scan_archive
from .reporting import (
    REPORTER_CHOICES,
    get_reporter,
    make_reporter,
    set_reporter,
    set_verbosity,
)
from .store import SqliteAttributionStore


def _inspect_cmd(args: argparse.Namespace, cfg: ArchiverConfig) -> int:
    step(f"inspecting {args.archive}")
    inv = inspect_archive(args.archive)
    rep = get_reporter()
    rep.flush()
    if args.json:
        print(json.dumps(inv.to_dict(), indent=2, sort_keys=True))
    else:
        rep.section("Archive contents")
        if inv.control is not None:
            c = inv.control
            rep.status(
                f"format {c.major_version}.{c.minor_version}, assets_included={c.assets_included}, "
                f"size={c.size_x}x{c.size_y}"
            )
        for path in inv.unknown_extensions:
            rep.warning(f"unknown asset extension: {path}")
        rep.status(inv.summary_line())
    if inv.error_text:
        rep.error(inv.error_text)
        return 1
    return 0


def _verify_cmd(args: argparse.Namespace, cfg: ArchiverConfig) -> int:
    step(f"verifying {args.archive}")
    report = verify_archive(args.archive, exempt=cfg.extra_exempt_assets)
    rep = get_reporter()
    for asset_id in sorted(report.missing, key=str):
        rep.verbose(f"missing asset {asset_id}")
    rep.status(report.summary_line())
    if report.error_text:
        rep.error(report.error_text)
    return 0 if report.ok else 1


def _scan_cmd(args: argparse.Namespace, cfg: ArchiverConfig) -> int:
    db = args.db or cfg.attribution_db
    if db is None:
        get_reporter().error("scan needs --db or attribution_db in the config")
        return 2
    step(f"scanning {args.archive} into {db}")
    result = scan_archive(args.archive, SqliteAttributionStore(db))
    if result.error_text:
        get_reporter().error(result.error_text)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="regionarchiver", description="Region archive tooling"
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (repeatable)",
    )
    p.add_argument(
        "-r",
        "--reporter",
        choices=list(REPORTER_CHOICES),
        default="plain",
        help="Select reporter backend: plain (default), rich, json (JSONL events), silent",
    )
    p.add_argument("-c", "--config", type=Path, help="YAML or JSON configuration file")
    sub = p.add_subparsers(dest="cmd", required=True)

    i = sub.add_parser("inspect", help="List what an archive contains")
    i.add_argument("archive", type=Path)
    i.add_argument("--json", action="store_true", help="Emit JSON inventory")
    i.set_defaults(func=_inspect_cmd)

    v = sub.add_parser("verify", help="Check that referenced assets are present")
    v.add_argument("archive", type=Path)
    v.set_defaults(func=_verify_cmd)

    s = sub.add_parser("scan", help="Record asset creators found in an archive")
    s.add_argument("archive", type=Path)
    s.add_argument("--db", type=Path, help="SQLite attribution database")
    s.set_defaults(func=_scan_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    set_reporter(make_reporter(args.reporter))
    set_verbosity(args.verbose)
    configure_logging(args.verbose)
    try:
        cfg = load_config(args.config) if args.config else ArchiverConfig()
    except (ConfigError, FileNotFoundError) as e:
        get_reporter().error(f"configuration: {e}")
        return 2
    return args.func(args, cfg)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
