from __future__ import annotations

import argparse
import sys
from pathlib import Path

from bulk_importer.config.loader import ConfigError, ImportConfig, load_config, load_env_file, resolve_dsn
from bulk_importer.entities import UnknownEntityError, entity_names, get_profile
from bulk_importer.excel.reader import guess_media_type
from bulk_importer.excel.template import write_template
from bulk_importer.logging.error_log import ErrorLogBuffer
from bulk_importer.logging.init import log_summary, setup_logging
from bulk_importer.models.session import ImportStatus
from bulk_importer.services.hierarchy import AccountTree, HierarchyError
from bulk_importer.services.pipeline import ImportPipeline
from bulk_importer.services.summary import render_summary_line
from bulk_importer.store.base import DataStore, StoreError
from bulk_importer.store.memory import MemoryStore

"""CLI entrypoint.

bulk-importer ENTITY FILE [--config PATH] [--yes] [--debug] [--inspect-data]
bulk-importer ENTITY --template OUT.xlsx
bulk-importer conta_dre [--tree] [--attach CHILD PARENT | --detach CHILD]
bulk-importer --list-entities

One run drives one import through decode, preview, validation and (after
confirmation, or --yes) upload. Exit codes: 0 success, 1 fatal (config,
store connection, unreadable file), 2 validation or upload failure.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_IMPORT_FAILED = 2


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="bulk-importer", description="Spreadsheet -> remote store bulk importer")
    p.add_argument("entity", nargs="?", help="Entity to import (see --list-entities)")
    p.add_argument("file", nargs="?", type=Path, help="Spreadsheet to import (.xlsx, .xls, .csv)")
    p.add_argument("--config", type=Path, default=None, help="Config file (default: config/import.yml)")
    p.add_argument("--yes", action="store_true", help="Upload without asking for confirmation")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows then exit")
    p.add_argument("--template", type=Path, metavar="OUT", help="Write an example workbook for ENTITY")
    p.add_argument("--list-entities", action="store_true", help="List importable entities")
    p.add_argument("--tree", action="store_true", help="conta_dre: print the account hierarchy")
    p.add_argument("--attach", nargs=2, metavar=("CHILD", "PARENT"), help="conta_dre: move account CHILD under PARENT")
    p.add_argument("--detach", metavar="CHILD", help="conta_dre: make account CHILD a root account")
    return p.parse_args(argv)


def _open_store(cfg: ImportConfig) -> DataStore:
    """Build the configured store backend.

    Backend modules are imported lazily so that memory mode (tests,
    DISABLE_DB_CONNECT=1) never needs a network client.
    """
    backend = cfg.store.backend
    if backend == "memory":
        return MemoryStore()
    if backend == "postgres":
        from bulk_importer.store.postgres_store import PostgresStore

        return PostgresStore.connect(resolve_dsn(cfg.database))
    if not cfg.store.url or not cfg.store.key:
        raise StoreError("supabase backend needs SUPABASE_URL and SUPABASE_KEY")
    from bulk_importer.store.supabase_store import SupabaseStore

    return SupabaseStore.connect(cfg.store.url, cfg.store.key)


def _confirm(question: str) -> bool:
    if not sys.stdin.isatty():
        return False
    answer = input(f"{question} [y/N] ").strip().lower()
    return answer in ("y", "yes", "s", "sim")


def _print_rows(rows: list[dict]) -> None:
    for r in rows:
        print("    " + ", ".join(f"{k}={'' if v is None else v}" for k, v in r.items()))


def _print_errors(errors) -> None:
    print(f"  {'row':>5}  {'field':<20} {'value':<20} message")
    for e in errors:
        print(f"  {e.row:>5}  {e.field:<20} {e.value[:20]:<20} {e.message}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # An empty list must not fall back to sys.argv (pytest arguments would leak in)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(debug=True)
        logger.debug("debug mode enabled")

    if args.list_entities:
        for name in entity_names():
            profile = get_profile(name)
            print(f"{name:<18} {profile.table:<20} {profile.title}")
        return EXIT_SUCCESS

    if not args.entity:
        logger.error("entity is required (use --list-entities)")
        return EXIT_FATAL

    # .env wins over the process environment for connection settings
    load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
        profile = get_profile(args.entity, cfg.entity_overrides(args.entity))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except UnknownEntityError as e:
        logger.error(str(e.args[0]))
        return EXIT_FATAL

    if args.template:
        out = write_template(profile, args.template)
        logger.info(f"template written: {out}")
        return EXIT_SUCCESS

    if args.tree or args.attach or args.detach is not None:
        return _manage_accounts(args, cfg, profile.name, profile.table)

    if args.file is None:
        logger.error("FILE is required")
        return EXIT_FATAL
    if not args.file.exists():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL

    try:
        store = _open_store(cfg)
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(profile.name, cfg.logs_directory)
    with store:
        pipeline = ImportPipeline(profile, store)
        session = pipeline.start_import(args.file.read_bytes(), guess_media_type(args.file), args.file.name)
        if session.status is ImportStatus.ERROR:
            exit_code = EXIT_FATAL
        else:
            logger.info(f"entity={profile.name} table={profile.table} rows={len(session.raw_rows)}")
            print("  preview:")
            _print_rows(pipeline.preview(cfg.preview_rows))
            if args.inspect_data:
                log_summary(render_summary_line(profile.name, session)[len("SUMMARY "):])
                return EXIT_SUCCESS
            exit_code = _validate_and_upload(pipeline, args.yes)

    session = pipeline.session
    if session.errors:
        error_log.extend(session.errors)
        path = error_log.flush()
        logger.info(f"error report: {path}")
    log_summary(render_summary_line(profile.name, session)[len("SUMMARY "):])
    return exit_code


def _validate_and_upload(pipeline: ImportPipeline, assume_yes: bool) -> int:
    logger = setup_logging()
    session = pipeline.confirm_preview()
    for notice in session.store_duplicates:
        logger.info(f"row {notice.row}: {notice.message} (skipped)")
    if session.errors:
        logger.error(f"{len(session.errors)} validation errors")
        _print_errors(session.errors)
        return EXIT_IMPORT_FAILED

    if not assume_yes and not _confirm(f"Upload {len(session.validated_rows)} rows?"):
        logger.warning("upload cancelled")
        return EXIT_IMPORT_FAILED

    session = pipeline.confirm_upload()
    if session.status is ImportStatus.ERROR:
        _print_errors(session.errors)
        return EXIT_IMPORT_FAILED
    return EXIT_SUCCESS


def _account_id(text: str) -> int | str:
    return int(text) if text.isdigit() else text


def _manage_accounts(args: argparse.Namespace, cfg: ImportConfig, entity: str, table: str) -> int:
    """Print or re-parent DRE accounts (--tree / --attach / --detach).

    Returns:
        0 on success, 1 for a fatal store or usage problem, 2 when the move is
        rejected (unknown account, self-parenting, cycle)
    """
    logger = setup_logging()
    if entity != "conta_dre":
        logger.error("--tree, --attach and --detach only apply to conta_dre")
        return EXIT_FATAL
    try:
        store = _open_store(cfg)
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL

    with store:
        try:
            tree = AccountTree.load(store, table)
            if args.attach:
                child, parent = (_account_id(a) for a in args.attach)
                tree.attach(store, child, parent)
            elif args.detach is not None:
                tree.detach(store, _account_id(args.detach))
        except HierarchyError as e:
            logger.error(str(e))
            return EXIT_IMPORT_FAILED
        except StoreError as e:
            logger.error(f"store: {e}")
            return EXIT_FATAL
        if args.tree:
            for depth, account in tree.walk():
                print(f"{'  ' * depth}{account.ordem}. {account.nome} (id={account.id})")
    return EXIT_SUCCESS


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
