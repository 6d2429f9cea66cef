"""Command-line entry point: extract a live schema or build one from CSV files, written as JSON."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import ConnectionDescriptor, ExtractionOptions, connection_from_env, load_env, load_options
from .csv_schema import load_schema
from .errors import IntrospectionError
from .extractor import extract_schema
from .inference.chain import TypeInferenceChain

logger = logging.getLogger(__name__)


def _write_json(document: dict, output_path: str) -> None:
    out = Path(output_path)
    if out.parent and not out.parent.exists():
        out.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Saving to {out}")
    with open(out, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, default=str)


def _options_from_args(args: argparse.Namespace) -> ExtractionOptions:
    options = load_options(args.config) if args.config else ExtractionOptions()
    if args.schema:
        options.schema_filter = args.schema
    if args.no_inference:
        options.enable_type_inference = False
    if args.no_sampling:
        options.enable_data_sampling = False
    if args.no_views:
        options.include_views = False
    if args.no_procedures:
        options.include_stored_procedures = False
    if args.no_functions:
        options.include_user_defined_functions = False
    if args.no_relationships:
        options.include_relationships = False
    if args.legacy_relationships:
        options.enable_legacy_relationship_inference = True
    if args.workers is not None:
        options.max_workers = args.workers
    if args.timeout is not None:
        options.query_timeout_seconds = args.timeout
    if args.deadline is not None:
        options.deadline_seconds = args.deadline
    return options


def cmd_extract(args: argparse.Namespace) -> None:
    if args.database_url == "-":
        descriptor = connection_from_env()
        if args.engine:
            descriptor.engine = args.engine
    else:
        descriptor = ConnectionDescriptor.from_url(args.database_url, engine=args.engine)
    schema = extract_schema(descriptor, _options_from_args(args))
    _write_json(schema.to_dict(), args.output_json_path)
    logger.info(f"Done: {len(schema.tables)} tables, {len(schema.relationships)} relationships")


def cmd_from_csv(args: argparse.Namespace) -> None:
    chain = None if args.no_inference else TypeInferenceChain.default()
    schema = load_schema(
        args.columns_file,
        relationships_path=args.relationships,
        indexes_path=args.indexes,
        delimiter=args.delimiter,
        chain=chain,
    )
    _write_json(schema.to_dict(), args.output_json_path)
    logger.info(f"Done: {len(schema.tables)} tables, {len(schema.relationships)} relationships")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dbintrospect", description=__doc__)
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ext = sub.add_parser("extract", help="Extract the schema of a live database")
    p_ext.add_argument("database_url", help="Database connection URL, or '-' to read DATABASE_* from the environment")
    p_ext.add_argument("output_json_path", help="Path for the schema JSON output")
    p_ext.add_argument("schema", nargs="?", default=None, help="Namespace to extract (default: server default, then SCHEMA env)")
    p_ext.add_argument("--engine", default=None, help="Engine kind when it cannot be read from the URL")
    p_ext.add_argument("--config", default=None, help="YAML file with extraction options")
    p_ext.add_argument("--no-inference", action="store_true", help="Use declared types only")
    p_ext.add_argument("--no-sampling", action="store_true", help="Do not read column values")
    p_ext.add_argument("--no-views", action="store_true", help="Skip views")
    p_ext.add_argument("--no-procedures", action="store_true", help="Skip stored procedures")
    p_ext.add_argument("--no-functions", action="store_true", help="Skip scalar functions")
    p_ext.add_argument("--no-relationships", action="store_true", help="Skip foreign keys")
    p_ext.add_argument("--legacy-relationships", action="store_true", help="Infer relationships from column names")
    p_ext.add_argument("--workers", type=int, default=None, help="Concurrent table workers")
    p_ext.add_argument("--timeout", type=int, default=None, help="Per-statement timeout in seconds")
    p_ext.add_argument("--deadline", type=float, default=None, help="Overall deadline in seconds")
    p_ext.set_defaults(func=cmd_extract)

    p_csv = sub.add_parser("from-csv", help="Build a schema from CSV exports")
    p_csv.add_argument("columns_file", help="CSV with schema, table, column, nullable, type, comment")
    p_csv.add_argument("output_json_path", help="Path for the schema JSON output")
    p_csv.add_argument("--relationships", default=None, help="CSV with foreign keys")
    p_csv.add_argument("--indexes", default=None, help="CSV with indexes")
    p_csv.add_argument("--delimiter", default=None, help="CSV delimiter (auto-detected when omitted)")
    p_csv.add_argument("--no-inference", action="store_true", help="Use declared types only")
    p_csv.set_defaults(func=cmd_from_csv)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    load_env()
    try:
        args.func(args)
    except IntrospectionError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
