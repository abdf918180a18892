"""Shared parser for the per-bank CSV exports.

Every bank module builds one ``DelimitedParser`` from three pieces of data:
the column names that identify its header row, an alias table mapping
logical fields to header substrings, and the bank-name patterns used for
detection. The row walk itself is the same for all of them.
"""

import csv
import logging
import re
from dataclasses import dataclass

from passbook.errors import Outcome
from passbook.models import ParsedTransaction, ParseResult
from passbook.normalize import (
    content_lines, find_header_row, normalize_date, parse_amount, parse_csv_line,
)

logger = logging.getLogger(__name__)

CREDIT_MARKERS = ("CR", "C")

# Logical fields a bank alias table may map. "amount" + "indicator" replace
# "withdrawal" + "deposit" for banks with a single signed-by-flag column.
FIELDS = (
    "date", "narration", "ref_no", "value_date",
    "withdrawal", "deposit", "closing_balance", "amount", "indicator",
)


@dataclass(frozen=True)
class Scoring:
    """Confidence returned for each combination of detection signals."""
    both: float
    header_only: float = 0.0
    name_only: float = 0.3


def column_map(headers: list[str], aliases: dict[str, list[str]]) -> dict[str, int]:
    """Map each logical field to the first header cell containing one of its aliases."""
    cols: dict[str, int] = {}
    for field_name, names in aliases.items():
        for i, header in enumerate(headers):
            if any(name in header for name in names):
                cols[field_name] = i
                break
    return cols


class DelimitedParser:
    formats = ["csv"]

    def __init__(
        self,
        key: str,
        name: str,
        required_headers: list[str],
        aliases: dict[str, list[str]],
        name_pattern: str,
        filename_pattern: str | None = None,
        scoring: Scoring = Scoring(both=0.85),
        header_hint: str | None = None,
        credit_markers: tuple[str, ...] = CREDIT_MARKERS,
    ):
        unknown = set(aliases) - set(FIELDS)
        if unknown:
            raise ValueError(f"Unknown alias fields for {key}: {sorted(unknown)}")
        self.key = key
        self.name = name
        self.required_headers = required_headers
        self.aliases = aliases
        self.name_re = re.compile(name_pattern, re.IGNORECASE)
        self.filename_re = re.compile(filename_pattern or name_pattern, re.IGNORECASE)
        self.scoring = scoring
        # Header-only detection counts only when this substring is also present.
        self.header_hint = header_hint
        self.credit_markers = credit_markers

    def __repr__(self) -> str:
        return f"DelimitedParser({self.key!r})"

    def has_bank_name(self, content: str, filename: str) -> bool:
        return bool(self.name_re.search(content) or self.filename_re.search(filename))

    def score(self, content: str, filename: str) -> float:
        lines = content_lines(content)
        header_idx = find_header_row(lines, self.required_headers)
        # Narrations name other banks (NEFT-KOTAK..., IMPS to HDFC), so once the
        # header is known only the preamble above it counts as a bank name.
        preamble = "\n".join(lines[:header_idx]) if header_idx >= 0 else content
        has_name = self.has_bank_name(preamble, filename)
        if header_idx >= 0 and has_name:
            return self.scoring.both
        if header_idx >= 0:
            if self.header_hint and self.header_hint not in lines[header_idx].lower():
                return 0.0
            return self.scoring.header_only
        if has_name:
            return self.scoring.name_only
        return 0.0

    def parse(self, content: str) -> ParseResult:
        result = ParseResult()
        lines = content_lines(content)
        header_idx = find_header_row(lines, self.required_headers)
        if header_idx == -1:
            logger.debug("%s: header row not found", self.key)
            return result

        headers = [h.lower() for h in parse_csv_line(lines[header_idx])]
        cols = column_map(headers, self.aliases)

        for line in lines[header_idx + 1:]:
            try:
                txn = self.parse_row(parse_csv_line(line), cols)
            except csv.Error as exc:
                logger.debug("%s: unreadable row %r: %s", self.key, line, exc)
                txn = None
            if txn is None:
                logger.debug("%s: %s %r", self.key, Outcome.ROW_SKIPPED, line)
                result.rows_skipped += 1
                continue
            result.transactions.append(txn)

        logger.debug(
            "%s: %d rows parsed, %d skipped",
            self.key, len(result.transactions), result.rows_skipped,
        )
        return result

    def parse_row(self, cells: list[str], cols: dict[str, int]) -> ParsedTransaction | None:
        """Build one transaction from split cells, or None when the row is malformed."""

        def cell(field_name: str) -> str:
            idx = cols.get(field_name)
            if idx is None or idx >= len(cells):
                return ""
            return cells[idx].strip()

        date = cell("date")
        if not date or not any(ch.isdigit() for ch in date):
            return None
        narration = cell("narration")
        if not narration:
            return None

        if "amount" in cols:
            amount = parse_amount(cell("amount"))
            is_credit = cell("indicator").upper() in self.credit_markers
            withdrawal = 0.0 if is_credit else amount
            deposit = amount if is_credit else 0.0
        else:
            withdrawal = parse_amount(cell("withdrawal"))
            deposit = parse_amount(cell("deposit"))

        return ParsedTransaction(
            date=normalize_date(date),
            narration=narration,
            ref_no=cell("ref_no"),
            value_date=normalize_date(cell("value_date") or date),
            withdrawal=withdrawal,
            deposit=deposit,
            closing_balance=parse_amount(cell("closing_balance")),
        )
