"""Schema-less CSV import for files no bank parser recognises.

The first line is the header. Columns are resolved through an alias table of
exact (lowercased) header names; date and narration columns are required.
Rows may carry their own category and merchant, otherwise the rules decide.
"""

import csv
import logging
import sqlite3
from dataclasses import dataclass

from passbook.categorizer import DEFAULT_CATEGORY, categorize
from passbook.db import atomic, fetch_rules, insert_transactions
from passbook.models import ParsedTransaction
from passbook.normalize import content_lines, decode_content, normalize_date, parse_amount, parse_csv_line

logger = logging.getLogger(__name__)

GENERIC_ALIASES = {
    "date": ["date", "txn date", "transaction date", "trans date"],
    "narration": ["narration", "description", "particulars", "details", "remarks", "memo"],
    "withdrawal": ["withdrawal", "debit", "withdrawal amt", "debit amount", "amount debited"],
    "deposit": ["deposit", "credit", "deposit amt", "credit amount", "amount credited"],
    "closing_balance": ["closing balance", "balance", "closing bal"],
    "category": ["category", "cat"],
    "merchant": ["merchant", "payee"],
    "ref_no": ["ref no", "reference", "ref", "reference no", "cheque no", "chq no"],
}


@dataclass
class GenericRow:
    transaction: ParsedTransaction
    category: str = ""
    merchant: str = ""


def resolve_columns(header: list[str], aliases: dict[str, list[str]]) -> dict[str, int]:
    cleaned = [h.strip().lower().replace('"', "").replace("'", "") for h in header]
    cols: dict[str, int] = {}
    for field_name, names in aliases.items():
        for i, h in enumerate(cleaned):
            if h in names:
                cols[field_name] = i
                break
    return cols


def parse_generic_csv(
    content: bytes | str,
    aliases: dict[str, list[str]] = GENERIC_ALIASES,
) -> tuple[list[GenericRow], int]:
    """Return (rows, rows_skipped). Raises ValueError if the header lacks date or narration."""
    lines = content_lines(decode_content(content))
    if len(lines) < 2:
        raise ValueError("CSV must have a header row and at least one data row")

    cols = resolve_columns(parse_csv_line(lines[0]), aliases)
    if "date" not in cols or "narration" not in cols:
        raise ValueError("CSV must have at least 'Date' and 'Narration' columns")

    rows: list[GenericRow] = []
    skipped = 0
    for line in lines[1:]:
        try:
            cells = parse_csv_line(line)
        except csv.Error as exc:
            logger.debug("Generic CSV: unreadable row %r: %s", line, exc)
            skipped += 1
            continue

        def cell(field_name: str) -> str:
            idx = cols.get(field_name)
            return cells[idx].strip() if idx is not None and idx < len(cells) else ""

        date, narration = cell("date"), cell("narration")
        if not date or not narration:
            skipped += 1
            continue
        iso = normalize_date(date)
        rows.append(GenericRow(
            transaction=ParsedTransaction(
                date=iso,
                narration=narration,
                ref_no=cell("ref_no"),
                value_date=iso,
                withdrawal=parse_amount(cell("withdrawal")),
                deposit=parse_amount(cell("deposit")),
                closing_balance=parse_amount(cell("closing_balance")),
            ),
            category=cell("category"),
            merchant=cell("merchant"),
        ))
    return rows, skipped


def import_generic(
    conn: sqlite3.Connection,
    content: bytes | str,
    aliases: dict[str, list[str]] = GENERIC_ALIASES,
    default_category: str = DEFAULT_CATEGORY,
    payroll_senders: dict[str, str] | None = None,
) -> dict:
    rows, skipped = parse_generic_csv(content, aliases)
    rules = fetch_rules(conn)

    to_insert = []
    for row in rows:
        category, merchant = row.category, row.merchant
        if not category:
            auto = categorize(row.transaction, rules, default=default_category, payroll_senders=payroll_senders)
            category = auto.category
            merchant = merchant or auto.merchant
        to_insert.append((row.transaction, category, merchant))

    with atomic(conn):
        imported = insert_transactions(conn, to_insert)

    logger.info("Generic CSV: %d imported, %d skipped", imported, skipped)
    return {"imported": imported, "skipped": skipped, "total": imported + skipped}
