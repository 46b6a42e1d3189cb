# ruff: noqa: I001
"""CLI for the ``transaction_import`` package.

This module exposes callable command handlers (``cmd_preview``,
``cmd_import``, ...) and a Typer-based console interface. Environment
variables (``OPENAI_API_KEY``, ``DATABASE_URL``, ``TXN_IMPORT_*``) are loaded
from a local ``.env`` using ``python-dotenv`` before any command runs.
Business logic lives in ``transaction_import.api`` and related modules.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging
from .models import ColumnMapping, DateFormat, ImportOptions, ImportResult


# ---- Small module-level helpers used by CLI commands -------------------------


def _resolve_max_workers(workers: int | None) -> int:
    """Worker count from ``--workers`` or ``TXN_IMPORT_MAX_WORKERS`` (1..32)."""

    from .pmap import resolve_concurrency

    return resolve_concurrency(workers)


def _read_upload(csv_path: Path) -> bytes:
    from .parser import validate_upload

    data = csv_path.read_bytes()
    validate_upload(csv_path.name, len(data))
    return data


def _load_table(data: bytes, *, has_header: bool):
    from .parser import parse, positional_headers

    if has_header:
        return parse(data)
    return parse(data, skip_header_row=False, headers=positional_headers(data))


def _build_oracle(use_oracle: bool | None):
    """Return an oracle when requested, or by default when an API key is set."""

    if use_oracle is None:
        use_oracle = bool(os.getenv("OPENAI_API_KEY"))
    if not use_oracle:
        return None
    from .oracle import OracleSuggester

    return OracleSuggester()


def _parse_mapping_overrides(pairs: Sequence[str]) -> dict[str, str]:
    """Parse ``field=header`` pairs; an empty header unmaps the field."""

    out: dict[str, str] = {}
    for pair in pairs:
        field, sep, header = pair.partition("=")
        if not sep or not field.strip():
            raise ValueError(f"invalid --map value {pair!r}; expected FIELD=HEADER")
        out[field.strip().lower()] = header.strip()
    return out


def _database_url(override: str | None) -> str | None:
    return override or os.getenv("DATABASE_URL") or None


def _print_result(result: ImportResult) -> None:
    mode = "dry-run" if result.dry_run else "commit"
    print(
        f"mode={mode} rows={result.total_rows} imported={result.imported} "
        f"failed={result.failed} duplicates={result.duplicates}"
    )
    for e in result.errors:
        print(f"row {e.row}\t{e.field}\t{e.message}")
    for w in result.warnings:
        print(f"row {w.row}\twarning\t{w.field}\t{w.message}")


# ---- Command handlers ----------------------------------------------------------


def cmd_preview(csv_path: str, *, rows: int = 10) -> int:
    """Print the header row, the first ``rows`` data rows, and the row count."""

    from .api import parse_file

    try:
        parsed = parse_file(Path(csv_path).read_bytes(), preview_size=rows, filename=csv_path)
    except FileNotFoundError:
        print(f"Error: File not found: {csv_path}", file=sys.stderr)
        return 1
    except PermissionError:
        print(f"Error: Permission denied: {csv_path}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: Failed to parse CSV: {e}", file=sys.stderr)
        return 1

    print("\t".join(parsed.headers))
    for row in parsed.preview_rows:
        print("\t".join(row.get(h, "") for h in parsed.headers))
    print(f"total_rows={parsed.total_row_count}")
    return 0


def cmd_map_columns(csv_path: str, *, use_oracle: bool | None = None) -> int:
    """Print the proposed ``field<TAB>header`` mapping and where it came from."""

    from .api import parse_file, resolve_mapping

    try:
        parsed = parse_file(Path(csv_path).read_bytes(), filename=csv_path)
    except FileNotFoundError:
        print(f"Error: File not found: {csv_path}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: Failed to parse CSV: {e}", file=sys.stderr)
        return 1

    resolution = resolve_mapping(parsed.headers, oracle=_build_oracle(use_oracle))
    print(f"source={resolution.source}")
    for field, header in resolution.mapping.as_dict().items():
        print(f"{field}\t{header}")
    missing = resolution.mapping.missing_required()
    if missing:
        print(
            "Warning: required fields not mapped: " + ", ".join(f.value for f in missing),
            file=sys.stderr,
        )
    return 0


def cmd_import(
    csv_path: str,
    *,
    account_id: str | None = None,
    category_id: str | None = None,
    date_format: str = "auto",
    mapping_overrides: Sequence[str] = (),
    dry_run: bool = False,
    has_header: bool = True,
    database_url: str | None = None,
    use_oracle: bool | None = None,
    workers: int | None = None,
    as_json: bool = False,
) -> int:
    """Import a CSV into the transaction store (or simulate it with ``dry_run``).

    Fatal problems (unreadable file, bad mapping, missing account for a
    commit) print ``Error: ...`` to stderr and return 1. Row-level failures are
    part of the printed result and still return 0.
    """

    from .api import run_import, resolve_mapping

    try:
        table = _load_table(_read_upload(Path(csv_path)), has_header=has_header)
    except FileNotFoundError:
        print(f"Error: File not found: {csv_path}", file=sys.stderr)
        return 1
    except PermissionError:
        print(f"Error: Permission denied: {csv_path}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: Failed to parse CSV: {e}", file=sys.stderr)
        return 1

    try:
        overrides = _parse_mapping_overrides(mapping_overrides)
        fmt = DateFormat.from_name(date_format)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    resolution = resolve_mapping(table.headers, oracle=_build_oracle(use_oracle))
    try:
        mapping = ColumnMapping.from_mapping({**resolution.mapping.as_dict(), **overrides})
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    url = _database_url(database_url)
    store = None
    if url:
        from .persistence import SqlTransactionStore

        store = SqlTransactionStore(database_url=url)

    options = ImportOptions(
        target_account_id=account_id,
        default_category_id=category_id,
        date_format=fmt,
        skip_header_row=has_header,
        dry_run=dry_run,
    )
    try:
        result = run_import(
            table, mapping, options, store=store, concurrency=_resolve_max_workers(workers)
        )
    except ValueError as e:
        print(f"Error: import failed: {e}", file=sys.stderr)
        return 1

    if url:
        from .db.client import session_scope
        from .persistence import record_import_run

        try:
            with session_scope(database_url=url) as session:
                record_import_run(
                    session,
                    file_name=Path(csv_path).name,
                    mapping=mapping,
                    account_id=account_id,
                    date_format=fmt,
                    result=result,
                )
        except Exception as e:
            print(f"Error: failed to record import run: {e}", file=sys.stderr)
            return 1

    if as_json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_result(result)
    return 0


def cmd_list_registry(kind: str, *, database_url: str | None = None) -> int:
    """Print ``id<TAB>name`` for every account or category."""

    from .db.client import session_scope
    from .persistence import list_accounts, list_categories

    lister = list_accounts if kind == "accounts" else list_categories
    try:
        with session_scope(database_url=_database_url(database_url)) as session:
            entries = lister(session)
    except Exception as e:
        print(f"Error: failed to load {kind} from DB: {e}", file=sys.stderr)
        return 1
    for entry in entries:
        suffix = f"\t{entry.parent_id}" if entry.parent_id else ""
        print(f"{entry.id}\t{entry.name}{suffix}")
    return 0


def cmd_init_db(*, database_url: str | None = None) -> int:
    """Create the ``ti_*`` tables on the target database."""

    from .db import create_schema

    try:
        create_schema(database_url=_database_url(database_url))
    except Exception as e:
        print(f"Error: failed to create schema: {e}", file=sys.stderr)
        return 1
    print("ok")
    return 0


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank and card transaction CSVs: preview, map columns, validate, "
        "skip duplicates, and commit. Loads .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
CSV_PATH_ARGUMENT = typer.Argument(
    ...,
    help="Path to the CSV file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
ORACLE_OPTION: OptionInfo = typer.Option(
    None,
    "--oracle/--no-oracle",
    help="Ask OpenAI for the column mapping (default: when OPENAI_API_KEY is set).",
)


@app.command("preview")
def preview_cmd(
    csv_path: Annotated[Path, CSV_PATH_ARGUMENT],
    rows: int = typer.Option(10, min=1, help="Number of data rows to show."),
) -> None:
    """Show headers, the first rows, and the total row count."""

    _exit(cmd_preview(str(csv_path), rows=rows))


@app.command("map-columns")
def map_columns_cmd(
    csv_path: Annotated[Path, CSV_PATH_ARGUMENT],
    use_oracle: bool | None = ORACLE_OPTION,
) -> None:
    """Propose which column holds date, amount, description, and the rest."""

    _exit(cmd_map_columns(str(csv_path), use_oracle=use_oracle))


@app.command("import")
def import_cmd(
    csv_path: Annotated[Path, CSV_PATH_ARGUMENT],
    *,
    account_id: str | None = typer.Option(
        None, "--account-id", help="Target account id (required unless --dry-run)."
    ),
    category_id: str | None = typer.Option(
        None, "--category-id", help="Default category id for every imported row."
    ),
    date_format: str = typer.Option(
        "auto",
        "--date-format",
        help="auto, ISO, US, EU (DD/MM/YYYY), UK (DD-MM-YYYY), DOT, or TEXT.",
    ),
    mapping_overrides: list[str] | None = typer.Option(
        None, "--map", help="Override one mapping entry as FIELD=HEADER (repeatable)."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate and count without writing."),
    has_header: bool = typer.Option(
        True, "--header/--no-header", help="Whether the first line is a header row."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
    use_oracle: bool | None = ORACLE_OPTION,
    workers: int | None = typer.Option(
        None, "--workers", help="Parallel row workers (default TXN_IMPORT_MAX_WORKERS or 4)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Validate and import a CSV, or dry-run it."""

    _exit(
        cmd_import(
            str(csv_path),
            account_id=account_id,
            category_id=category_id,
            date_format=date_format,
            mapping_overrides=mapping_overrides or (),
            dry_run=dry_run,
            has_header=has_header,
            database_url=database_url,
            use_oracle=use_oracle,
            workers=workers,
            as_json=as_json,
        )
    )


@app.command("accounts")
def accounts_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """List accounts available as import targets."""

    _exit(cmd_list_registry("accounts", database_url=database_url))


@app.command("categories")
def categories_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """List categories usable as the default category."""

    _exit(cmd_list_registry("categories", database_url=database_url))


@app.command("init-db")
def init_db_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Create missing tables (development and test databases)."""

    _exit(cmd_init_db(database_url=database_url))


@app.callback()
def _root() -> None:
    """Load ``.env`` from the current directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
