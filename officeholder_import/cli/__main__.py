from __future__ import annotations

import argparse
import sys
from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from ..db.connection import db_cursor
from ..db.postgres import PostgresRegistry, load_catalog_from_db
from ..excel.reader import ImportStructureError, read_import_file
from ..excel.writer import write_error_report, write_import_template, write_registry_export
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..services.catalog import CatalogError, ReferenceCatalog, load_catalog_from_yaml
from ..services.orchestrator import ProcessingError, run_import
from ..services.registry import InMemoryRegistry, OfficeholderRegistry, RegistryError
from ..services.summary import render_summary_line

"""CLI entrypoint.

    officeholder-import UPLOAD.xlsx [--validate-only] [--dry-run [--offline]] [--report PATH] [--export PATH]
    officeholder-import --template PATH
    officeholder-import --export PATH
    officeholder-import UPLOAD.xlsx --inspect-data

Exit codes: 0 every row imported, 2 invalid or failed rows (error report
written), 1 fatal (config, unreadable upload, reference data, database).

The PostgreSQL connection is opened only when something needs it: the
catalog when no reference_data file is configured, and the registry unless
--validate-only / --offline. A --dry-run reads the current holders from the
database into an in-memory registry and never writes back.
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_SAMPLE_ROWS = 3
REPORT_STAMP_FMT = "%Y%m%d-%H%M%S"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv.

    override=True なので .env の値が既存の環境変数より優先される (DB 接続情報)。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="officeholder-import", description="Officeholder spreadsheet importer")
    p.add_argument("file", nargs="?", type=Path, help="Upload to import (.xlsx, first sheet only)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML (default: %(default)s)")
    p.add_argument("--validate-only", action="store_true", help="Validate and report; do not touch the registry")
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Reconcile into an in-memory copy of the current registry (nothing persisted)",
    )
    p.add_argument("--offline", action="store_true", help="Dry run from an empty registry, without the database")
    p.add_argument("--report", type=Path, help="Error report path (default: <reports_directory>/<upload>-errors-<stamp>.xlsx)")
    p.add_argument("--export", type=Path, help="Write the current-officeholder export after the run")
    p.add_argument("--template", type=Path, help="Write a blank import template and exit")
    p.add_argument("--inspect-data", action="store_true", help="Print normalized headers & first rows then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = p.parse_args(argv)
    # --offline は dry run を含む
    args.dry_run = args.dry_run or args.offline
    return args


def _inspect_data(path: Path) -> int:
    try:
        sheet = read_import_file(path)
    except ImportStructureError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name}")
    print(f"  SHEET: {sheet.sheet_name} cols={sheet.columns}")
    for raw in sheet.rows[:INSPECT_SAMPLE_ROWS]:
        print(f"    row {raw.row_number}: {raw.values}")
    print(f"  data_rows={len(sheet.rows)}")
    return EXIT_SUCCESS_ALL


def _load_catalog(cfg: ImportConfig, cursor: Any) -> ReferenceCatalog:
    if cfg.reference_data is not None:
        return load_catalog_from_yaml(cfg.reference_data)
    return load_catalog_from_db(cursor, timeout_ms=cfg.lookup_timeout_ms)


def _default_report_path(cfg: ImportConfig, upload: Path) -> Path:
    stamp = datetime.now().strftime(REPORT_STAMP_FMT)
    return cfg.reports_directory / f"{upload.stem}-errors-{stamp}.xlsx"


def _run(args: argparse.Namespace, cfg: ImportConfig, cursor: Any) -> int:
    logger = setup_logging(debug=args.debug)
    catalog = _load_catalog(cfg, cursor)

    if args.template is not None:
        write_import_template(catalog, args.template)
        return EXIT_SUCCESS_ALL

    registry: OfficeholderRegistry | None = None
    if args.dry_run:
        if cursor is not None and not args.offline:
            registry = InMemoryRegistry.seeded_from(PostgresRegistry(cursor))
        else:
            registry = InMemoryRegistry()
    elif cursor is not None and not (args.validate_only and args.export is None):
        registry = PostgresRegistry(cursor)

    exit_code = EXIT_SUCCESS_ALL
    if args.file is not None:
        report = run_import(
            args.file,
            args.file.name,
            catalog,
            registry,
            validate_only=args.validate_only,
            suggestion_limit=cfg.suggestion_limit,
            error_log=ErrorLogBuffer(cfg.logs_directory),
        )
        if report.has_failures:
            report_path = write_error_report(report, args.report or _default_report_path(cfg, args.file))
            logger.warning(f"{report.failed_imports} row(s) failed; see {report_path}")
            exit_code = EXIT_PARTIAL_FAILURE
        # log_summary が "SUMMARY " を付けるので本文のみ渡す
        log_summary(render_summary_line(report).removeprefix("SUMMARY "))

    if args.export is not None:
        if registry is None:
            logger.error("export needs a registry (database or --dry-run)")
            return EXIT_FATAL
        write_registry_export(registry, catalog, args.export)
    return exit_code


def main(argv: list[str] | None = None) -> int:
    # [] が渡された場合に sys.argv を読まないよう None のときだけ参照
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        if args.file is None:
            logger.error("--inspect-data needs an upload file")
            return EXIT_FATAL
        return _inspect_data(args.file)

    if args.file is None and args.template is None and args.export is None:
        logger.error("nothing to do: give an upload file, --template or --export")
        return EXIT_FATAL
    if args.file is not None and not args.file.exists():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL

    writes_registry = args.export is not None or (args.file is not None and not args.validate_only)
    needs_db = cfg.reference_data is None or (args.template is None and not args.offline and writes_registry)
    try:
        with ExitStack() as stack:
            cursor = stack.enter_context(db_cursor(cfg.database)) if needs_db else None
            logger.debug(f"mode={'live' if cursor is not None else 'offline'}")
            return _run(args, cfg, cursor)
    except ImportStructureError as e:
        logger.error(f"input: {e}")
    except CatalogError as e:
        logger.error(f"reference data: {e}")
    except ProcessingError as e:
        logger.error(f"processing: {e}")
    except RegistryError as e:
        logger.error(f"registry: {e}")
    except psycopg2.Error as e:
        logger.error(f"database: {str(e).strip()}")
    except OSError as e:
        logger.error(f"output: {e}")
    return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
