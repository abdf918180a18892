"""Line scanner for fixed-width plain-text statements.

The scanner is a two-state machine (outside / inside the transaction table).
A dashed separator line enters the table, a date-prefixed line opens a new
record, any other line inside the table continues the open record's
narration. Footer and page-header lines are recognised by an ordered list of
``NoiseRule`` entries; the first rule whose predicate accepts a line decides
what happens to it.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable

from passbook.models import ParsedTransaction, ParseResult
from passbook.normalize import normalize_date, parse_amount, split_lines

logger = logging.getLogger(__name__)

FLUSH_AND_EXIT = "flush_and_exit"  # close the open record, leave the table
IGNORE = "ignore"  # drop the line, keep the current state

SEPARATOR = "--------"
DATE_PREFIX = re.compile(r"\d{2}/\d{2}/\d{2}")


@dataclass(frozen=True)
class NoiseRule:
    name: str
    predicate: Callable[[str], bool]
    action: str = FLUSH_AND_EXIT


def contains(text: str) -> Callable[[str], bool]:
    return lambda line: text in line


def matches(pattern: str) -> Callable[[str], bool]:
    rx = re.compile(pattern)
    return lambda line: rx.search(line) is not None


@dataclass(frozen=True)
class Columns:
    """Character offsets (start, end) of each field; end None runs to end of line."""
    date: tuple[int, int | None]
    narration: tuple[int, int | None]
    ref_no: tuple[int, int | None]
    value_date: tuple[int, int | None]
    withdrawal: tuple[int, int | None]
    deposit: tuple[int, int | None]
    closing_balance: tuple[int, int | None]

    def cut(self, line: str, field_name: str) -> str:
        start, end = getattr(self, field_name)
        return line[start:end].strip()


class FixedWidthParser:
    formats = ["txt"]

    both_score = 0.95
    marker_score = 0.7
    filename_score = 0.6

    def __init__(
        self,
        key: str,
        name: str,
        columns: Columns,
        noise_rules: list[NoiseRule],
        marker: str,
        filename_pattern: str,
        header_prefix: str = "Date",
    ):
        self.key = key
        self.name = name
        self.columns = columns
        self.noise_rules = list(noise_rules)
        # Literal text printed on every page of the bank's export.
        self.marker = marker
        self.filename_re = re.compile(filename_pattern, re.IGNORECASE)
        self.header_prefix = header_prefix

    def __repr__(self) -> str:
        return f"FixedWidthParser({self.key!r})"

    def extend(self, key: str, extra_rules: list[NoiseRule]) -> "FixedWidthParser":
        """Return a variant of this parser with additional noise rules appended."""
        return FixedWidthParser(
            key=key, name=self.name, columns=self.columns,
            noise_rules=self.noise_rules + list(extra_rules),
            marker=self.marker, filename_pattern=self.filename_re.pattern,
            header_prefix=self.header_prefix,
        )

    def score(self, content: str, filename: str) -> float:
        has_marker = self.marker in content
        has_separators = SEPARATOR in content
        if has_marker and has_separators:
            return self.both_score
        if has_marker:
            return self.marker_score
        if self.filename_re.search(filename) and has_separators:
            return self.filename_score
        return 0.0

    def match_noise(self, line: str) -> NoiseRule | None:
        for rule in self.noise_rules:
            if rule.predicate(line):
                return rule
        return None

    def _is_separator(self, line: str) -> bool:
        return line.startswith(SEPARATOR)

    def _is_table_boundary(self, line: str) -> bool:
        stripped = line.strip()
        return stripped.startswith(self.header_prefix) or stripped.startswith(SEPARATOR)

    def _open_record(self, line: str) -> ParsedTransaction:
        cut = self.columns.cut
        date = cut(line, "date")
        return ParsedTransaction(
            date=normalize_date(date),
            narration=cut(line, "narration"),
            ref_no=cut(line, "ref_no"),
            value_date=normalize_date(cut(line, "value_date") or date),
            withdrawal=parse_amount(cut(line, "withdrawal")),
            deposit=parse_amount(cut(line, "deposit")),
            closing_balance=parse_amount(cut(line, "closing_balance")),
        )

    def parse(self, content: str) -> ParseResult:
        result = ParseResult()
        lines = split_lines(content)
        current: ParsedTransaction | None = None
        in_data = False

        def flush() -> None:
            nonlocal current
            if current is not None:
                result.transactions.append(current)
                current = None

        for i, line in enumerate(lines):
            if self._is_separator(line) and not in_data:
                # A separator directly above the column header (or another
                # separator) is decoration; the table starts at the next one.
                next_line = lines[i + 1] if i + 1 < len(lines) else ""
                if not self._is_table_boundary(next_line):
                    in_data = True
                continue

            rule = self.match_noise(line)
            if rule is not None:
                if rule.action == FLUSH_AND_EXIT:
                    flush()
                    in_data = False
                continue

            if self._is_separator(line) or not in_data or not line.strip():
                continue

            if DATE_PREFIX.match(line[:10]):
                flush()
                current = self._open_record(line)
            elif current is not None:
                text = self.columns.cut(line, "narration")
                if text:
                    current.narration = f"{current.narration} {text}".strip()

        flush()
        logger.debug("%s: %d records", self.key, len(result.transactions))
        return result
