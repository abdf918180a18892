import logging
import sqlite3
from pathlib import Path

from passbook.banks import register_builtin
from passbook.categorizer import DEFAULT_CATEGORY, categorize
from passbook.db import atomic, fetch_existing_ref_nos, fetch_rules, insert_transactions
from passbook.errors import EmptyResult, Outcome
from passbook.normalize import decode_content
from passbook.registry import ParserRegistry, registry

logger = logging.getLogger(__name__)

register_builtin(registry)


def import_statement(
    conn: sqlite3.Connection,
    content: bytes | str,
    filename: str,
    parsers: ParserRegistry = registry,
    default_category: str = DEFAULT_CATEGORY,
    payroll_senders: dict[str, str] | None = None,
) -> dict:
    """Detect, parse, dedupe, categorize and store one bank statement.

    Raises UnsupportedFormat when no parser claims the file and EmptyResult
    when the chosen parser finds no rows; nothing is written in either case.
    Returns counts: imported, skipped (= duplicates + rows_skipped), total, bank.
    """
    text = decode_content(content)
    parser, parsed = parsers.parse(text, filename)
    if not parsed.transactions:
        raise EmptyResult(parser.name)

    existing_refs = fetch_existing_ref_nos(conn)
    rules = fetch_rules(conn)

    to_insert = []
    duplicates = 0
    for txn in parsed.transactions:
        # Rows without a reference number cannot be matched and are always kept.
        if txn.ref_no and txn.ref_no in existing_refs:
            logger.debug("%s: ref %s", Outcome.DUPLICATE_SKIPPED, txn.ref_no)
            duplicates += 1
            continue
        result = categorize(txn, rules, default=default_category, payroll_senders=payroll_senders)
        to_insert.append((txn, result.category, result.merchant))

    with atomic(conn):
        imported = insert_transactions(conn, to_insert)

    skipped = duplicates + parsed.rows_skipped
    logger.info(
        "%s: %d imported, %d duplicates, %d malformed rows (%s)",
        filename, imported, duplicates, parsed.rows_skipped, parser.name,
    )
    return {
        "imported": imported,
        "skipped": skipped,
        "duplicates": duplicates,
        "rows_skipped": parsed.rows_skipped,
        "total": imported + skipped,
        "bank": parser.name,
    }


def import_file(conn: sqlite3.Connection, file_path: Path, **kwargs) -> dict:
    """Import a statement file from disk. See import_statement for the result shape."""
    return import_statement(conn, file_path.read_bytes(), file_path.name, **kwargs)
