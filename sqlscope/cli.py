"""CLI entry point for sqlscope."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from sqlscope.config import LineageConfig
from sqlscope.core.analyzer import analyze
from sqlscope.core.errors import AnalysisError
from sqlscope.core.report import render_error, render_text


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sqlscope",
        description="sqlscope — Extract leaf tables and used columns from SQL queries.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- analyze command ---
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze SQL queries and print their lineage",
    )
    analyze_parser.add_argument(
        "files",
        nargs="*",
        type=str,
        help="SQL files to analyze, one query per file (default: read stdin)",
    )
    analyze_parser.add_argument(
        "--sql",
        type=str,
        default=None,
        help="Analyze this query text instead of files",
    )
    analyze_parser.add_argument(
        "--format",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    analyze_parser.add_argument(
        "--schema-file",
        type=str,
        default=None,
        help="JSON catalog mapping project.dataset.table to {column: type}",
    )
    analyze_parser.add_argument(
        "--no-broadcast",
        action="store_true",
        default=False,
        help="Leave unqualified columns unattributed instead of assigning them to every table",
    )

    # --- serve command ---
    serve_parser = subparsers.add_parser(
        "serve",
        help="Launch the web UI",
    )
    serve_parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    config = LineageConfig.from_env()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "analyze":
        _cmd_analyze(args, config)
    elif args.command == "serve":
        _cmd_serve(args)


def _read_queries(args: argparse.Namespace) -> list[tuple[str, str]]:
    """Collect (label, sql) pairs from --sql, files or stdin."""
    if args.sql is not None:
        return [("<sql>", args.sql)]
    if not args.files:
        return [("<stdin>", sys.stdin.read())]

    queries = []
    for name in args.files:
        path = Path(name)
        if not path.exists():
            print(f"Error: File not found: {path}", file=sys.stderr)
            sys.exit(1)
        queries.append((path.name, path.read_text(encoding="utf-8")))
    return queries


def _cmd_analyze(args: argparse.Namespace, config: LineageConfig) -> None:
    """Analyze queries and print their lineage."""
    updates = {}
    if args.schema_file:
        updates["schema_file"] = Path(args.schema_file)
    if args.no_broadcast:
        updates["broadcast_unqualified"] = False
    config = config.model_copy(update=updates)
    provider = config.build_provider()

    failed = False
    reports = []
    for label, sql in _read_queries(args):
        try:
            result = analyze(sql, provider=provider, config=config)
        except AnalysisError as e:
            failed = True
            print(render_error(e.message), file=sys.stderr)
            continue
        reports.append((label, result))

    if args.format == "json":
        payload = {label: result.model_dump() for label, result in reports}
        if len(reports) == 1:
            payload = reports[0][1].model_dump()
        print(json.dumps(payload, indent=2))
    else:
        for label, result in reports:
            if len(reports) > 1:
                print(f"-- {label}")
            print(render_text(result))

    if failed:
        sys.exit(1)


def _cmd_serve(args: argparse.Namespace) -> None:
    """Launch the web UI server."""
    import uvicorn

    print("\nsqlscope — Web UI")
    print(f"   Open http://{args.host}:{args.port} in your browser\n")

    uvicorn.run(
        "sqlscope.api.server:app",
        host=args.host,
        port=args.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
