"""Command-line interface for the game data unifier."""

from __future__ import annotations

import argparse
import json
import logging
import shlex
import sys
from datetime import datetime
from pathlib import Path

from .errors import GameUnavailableError
from .models import GameView
from .pipelines.context import PipelineContext
from .pipelines.export_pipeline import export_cached_games
from .utils import ProjectPaths


def setup_logging(log_file: Path) -> None:
    """Configure logging to both console and file."""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    # File handler
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    # Console handler (stderr, so --json output on stdout stays clean)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Silence verbose HTTP debug logs by default
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    logging.info(f"Logging to file: {log_file}")


def _default_log_file(*, command_name: str, logs_dir: Path) -> Path:
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    return logs_dir / f"log-{ts}-{command_name}.log"


def _setup_logging_from_args(paths: ProjectPaths, args: argparse.Namespace) -> None:
    setup_logging(
        args.log_file or _default_log_file(command_name=args.command, logs_dir=paths.data_logs)
    )
    if args.debug:
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    argv = " ".join(shlex.quote(a) for a in sys.argv)
    logging.info(f"Invocation: {argv}")


def _context(args: argparse.Namespace) -> PipelineContext:
    paths = ProjectPaths.from_root(args.run_dir or Path.cwd())
    paths.ensure()
    _setup_logging_from_args(paths, args)
    return PipelineContext(
        paths=paths,
        credentials_path=args.credentials or paths.credentials_path,
        language=args.language,
    )


def _print_view(view: GameView, *, as_json: bool) -> None:
    rec = view.record
    if as_json:
        payload = rec.to_dict()
        payload["counters"] = {
            "views": view.views,
            "upvotes": view.upvotes,
            "downvotes": view.downvotes,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    print(f"{rec.title} ({rec.release_date or 'unknown date'})")
    print(f"  primary={rec.primary_id} secondary={rec.secondary_id if rec.secondary_id is not None else '-'}")
    print(f"  platforms: {', '.join(rec.platforms) or '-'}")
    print(f"  genres: {', '.join(rec.genres) or '-'}")
    print(f"  developers: {', '.join(rec.developers) or '-'}")
    print(f"  views={view.views} up={view.upvotes} down={view.downvotes}")


def _command_resolve(args: argparse.Namespace) -> None:
    ctx = _context(args)
    cache = ctx.build_cache()
    try:
        view = cache.get(args.key)
    except GameUnavailableError as e:
        raise SystemExit(str(e)) from e
    _print_view(view, as_json=args.json)
    logging.info(f"Provider stats: {cache.clients.format_stats() if cache.clients else '-'}")
    logging.info(f"Store stats: {cache.store_stats()}")


def _command_peek(args: argparse.Namespace) -> None:
    ctx = _context(args)
    cache = ctx.build_cache(offline=True)
    record = cache.peek(args.key)
    if record is None:
        raise SystemExit(f"Not cached: {args.key}")
    logging.info(f"'{args.key}' is {cache.state(args.key).value}")
    counters = cache.counters(args.key)
    _print_view(GameView(record=record, **counters), as_json=args.json)


def _command_invalidate(args: argparse.Namespace) -> None:
    ctx = _context(args)
    cache = ctx.build_cache(offline=True)
    cache.invalidate(args.key)
    logging.info(f"✔ Invalidated: {args.key}")


def _command_view(args: argparse.Namespace) -> None:
    ctx = _context(args)
    cache = ctx.build_cache(offline=True)
    views = cache.record_view(args.key)
    logging.info(f"✔ '{args.key}' views={views}")


def _command_vote(args: argparse.Namespace) -> None:
    ctx = _context(args)
    cache = ctx.build_cache(offline=True)
    total = cache.vote(args.key, up=args.direction == "up")
    logging.info(f"✔ '{args.key}' {args.direction}votes={total}")


def _command_export(args: argparse.Namespace) -> None:
    ctx = _context(args)
    cache = ctx.build_cache(offline=True)
    out = args.output or (ctx.paths.data_output / "Games_Cached.csv")
    export_cached_games(cache, out)


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        raise SystemExit(
            "Missing command. Use one of: resolve, peek, invalidate, view, vote, export. "
            "Run `game-unifier --help` for usage."
        )

    parser = argparse.ArgumentParser(description="Unify game metadata from two catalogs")
    sub = parser.add_subparsers(dest="command", required=True)

    p_common = argparse.ArgumentParser(add_help=False)
    p_common.add_argument(
        "--run-dir",
        type=Path,
        help="Directory holding data/cache, data/output and data/logs (default: current directory)",
    )
    p_common.add_argument(
        "--credentials",
        type=Path,
        help="Credentials YAML (default: <run-dir>/data/credentials.yaml)",
    )
    p_common.add_argument("--language", default="en", help="Provider language (default: en)")
    p_common.add_argument(
        "--log-file",
        type=Path,
        help="Log file path (default: data/logs/log-<timestamp>-<command>.log)",
    )
    p_common.add_argument("--debug", action="store_true", help="Enable DEBUG logging (default: INFO)")

    p_resolve = sub.add_parser(
        "resolve", help="Serve a game, regenerating it when stale or missing", parents=[p_common]
    )
    p_resolve.add_argument("key", help="Game key (primary catalog slug)")
    p_resolve.add_argument("--json", action="store_true", help="Print the full record as JSON")
    p_resolve.set_defaults(_fn=_command_resolve)

    p_peek = sub.add_parser("peek", help="Show the stored record without regenerating", parents=[p_common])
    p_peek.add_argument("key")
    p_peek.add_argument("--json", action="store_true", help="Print the full record as JSON")
    p_peek.set_defaults(_fn=_command_peek)

    p_inv = sub.add_parser(
        "invalidate", help="Delete a stored record and its identity mapping", parents=[p_common]
    )
    p_inv.add_argument("key")
    p_inv.set_defaults(_fn=_command_invalidate)

    p_view = sub.add_parser("view", help="Count one view of a game", parents=[p_common])
    p_view.add_argument("key")
    p_view.set_defaults(_fn=_command_view)

    p_vote = sub.add_parser("vote", help="Record an up or down vote", parents=[p_common])
    p_vote.add_argument("key")
    p_vote.add_argument("direction", choices=["up", "down"])
    p_vote.set_defaults(_fn=_command_vote)

    p_export = sub.add_parser(
        "export", help="Write cached games to CSV, most viewed first", parents=[p_common]
    )
    p_export.add_argument(
        "--output", type=Path, help="Output CSV (default: data/output/Games_Cached.csv)"
    )
    p_export.set_defaults(_fn=_command_export)

    ns = parser.parse_args(argv)
    ns._fn(ns)
    return


if __name__ == "__main__":
    main()
