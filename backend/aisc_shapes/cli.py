"""Command-line client for the shape catalog.

Each invocation opens the configured repository (see
``aisc_shapes.core.config``), runs one command and exits. Query
conditions use the same ``name:op:value`` syntax as the HTTP API.

Example:
    $ aisc-shapes import aisc-shapes-database-v16.0.csv --replace
    $ aisc-shapes query --family W --where "depth:ge:12" --sort W --limit 5
    $ aisc-shapes get W12X26
    $ aisc-shapes families
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import TYPE_CHECKING

from aisc_shapes.api import shapes as api_shapes
from aisc_shapes.core import config, errors
from aisc_shapes.db import database
from aisc_shapes.domain import schema
from aisc_shapes.services import ingest_aisc

if TYPE_CHECKING:
    from aisc_shapes.domain.shapes import ShapeRecord

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="aisc-shapes",
        description="Store and query AISC structural steel shapes",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    importer = commands.add_parser("import", help="Import an AISC shapes CSV")
    importer.add_argument("csv", help="Path to the AISC Shapes Database CSV")
    importer.add_argument(
        "--replace",
        action="store_true",
        help="Replace shapes that already exist instead of skipping them",
    )

    getter = commands.add_parser("get", help="Print one shape")
    getter.add_argument("designation")
    getter.add_argument(
        "--edi",
        action="store_true",
        help="Look the shape up by its EDI standard nomenclature",
    )

    query = commands.add_parser("query", help="List shapes matching conditions")
    query.add_argument(
        "--family",
        action="append",
        default=None,
        help="Family code to restrict to (repeatable)",
    )
    query.add_argument(
        "--where",
        action="append",
        default=[],
        metavar="NAME:OP:VALUE",
        help="Condition in the property's declared unit (repeatable)",
    )
    query.add_argument("--sort", default=None, help="Sort key")
    query.add_argument(
        "--desc", action="store_true", help="Sort in descending order"
    )
    query.add_argument("--offset", type=int, default=0)
    query.add_argument("--limit", type=int, default=None)

    deleter = commands.add_parser("delete", help="Delete one shape")
    deleter.add_argument("designation")

    commands.add_parser("families", help="List families and their properties")
    return parser.parse_args(argv)


def _print_record(record: ShapeRecord) -> None:
    print(json.dumps(api_shapes.record_to_dict(record), ensure_ascii=False))


def _run_import(args: argparse.Namespace, repo: database.ShapeRepository) -> int:
    summary = ingest_aisc.import_csv(args.csv, repo, replace=args.replace)
    print(
        f"created={summary.created} updated={summary.updated} "
        f"skipped={summary.skipped} failed={len(summary.failures)}"
    )
    for failure in summary.failures:
        print(
            f"line {failure.line} ({failure.designation}): {failure.reason}",
            file=sys.stderr,
        )
    return 0


def _run_query(args: argparse.Namespace, repo: database.ShapeRepository) -> int:
    query = api_shapes.build_query(
        args.family, args.where, args.sort, args.desc, args.offset, args.limit
    )
    with repo.query(query) as results:
        for record in results:
            _print_record(record)
    return 0


def _run_families() -> int:
    registry = schema.get_registry()
    for family in sorted(registry.all_families()):
        family_schema = registry.schema_for(family)
        print(
            f"{family.value:<10} {family.name.lower():<16} "
            f"depth={family_schema.depth_property} "
            f"width={family_schema.width_property} "
            f"properties={len(family_schema.definitions)}"
        )
    return 0


def run(args: argparse.Namespace, repo: database.ShapeRepository) -> int:
    """Dispatch a parsed command against ``repo``."""
    if args.command == "import":
        return _run_import(args, repo)
    if args.command == "get":
        if args.edi:
            _print_record(repo.get_by_edi_nomenclature(args.designation))
        else:
            _print_record(repo.get(args.designation))
        return 0
    if args.command == "query":
        return _run_query(args, repo)
    if args.command == "delete":
        repo.delete(args.designation)
        print(f"deleted {args.designation}")
        return 0
    raise ValueError(f"Unknown command {args.command!r}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = config.get_settings()
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    if args.command == "families":
        return _run_families()
    try:
        repo = database.get_shape_repository(settings)
        return run(args, repo)
    except errors.ShapesError as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
