import csv
import logging
import math
import re

logger = logging.getLogger(__name__)

MONTHS = {
    "jan": "01", "feb": "02", "mar": "03", "apr": "04", "may": "05", "jun": "06",
    "jul": "07", "aug": "08", "sep": "09", "oct": "10", "nov": "11", "dec": "12",
}

_DAY_MON_YEAR = re.compile(r"^(\d{1,2})\s+([A-Za-z]{3})\s+(\d{4})$")
_FULL_YEAR = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_SHORT_YEAR = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2})$")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_NUMERIC_PREFIX = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)")


def expand_year(yy: str) -> str:
    """Two-digit year pivot: above 50 is the 1900s, otherwise the 2000s."""
    return f"19{yy}" if int(yy) > 50 else f"20{yy}"


def normalize_date(raw: str, strict: bool = False) -> str:
    """Convert DD MMM YYYY, DD/MM/YYYY, DD-MM-YYYY, DD/MM/YY or DD-MM-YY to YYYY-MM-DD.

    Anything else is returned stripped but otherwise unchanged, unless
    ``strict`` is set, in which case a ValueError is raised.
    """
    s = raw.strip()

    m = _DAY_MON_YEAR.match(s)
    if m:
        month = MONTHS.get(m.group(2).lower())
        if month:
            return f"{m.group(3)}-{month}-{m.group(1).zfill(2)}"

    m = _FULL_YEAR.match(s)
    if m:
        return f"{m.group(3)}-{m.group(2).zfill(2)}-{m.group(1).zfill(2)}"

    m = _SHORT_YEAR.match(s)
    if m:
        return f"{expand_year(m.group(3))}-{m.group(2).zfill(2)}-{m.group(1).zfill(2)}"

    if strict:
        raise ValueError(f"Unrecognized date: {raw!r}")
    if s:
        logger.warning("Unrecognized date shape %r, keeping it as-is", s)
    return s


def parse_amount(raw: str | None) -> float:
    """Strip thousands separators and parentheses, return float. Blank or garbage is 0.

    Only the leading number counts, so trailing markers such as ``Cr``,
    ``Dr`` or ``INR`` are ignored: ``"12,345.00(Cr)"`` is 12345.0.
    """
    if raw is None or not raw.strip():
        return 0.0
    cleaned = raw.strip().replace(",", "").replace("(", "").replace(")", "")
    m = _NUMERIC_PREFIX.match(cleaned)
    if not m:
        logger.debug("Unparseable amount %r, using 0", raw)
        return 0.0
    value = float(m.group(0))
    return value if math.isfinite(value) else 0.0


def parse_csv_line(line: str) -> list[str]:
    """Split one delimited line into trimmed cells.

    Quoted cells may contain commas, and a doubled quote inside a quoted
    cell is a literal quote.
    """
    row = next(csv.reader([line], skipinitialspace=True), [])
    return [cell.strip() for cell in row] or [""]


def split_lines(content: str) -> list[str]:
    """Split on CRLF, LF or a lone CR, keeping blank lines."""
    return _LINE_BREAK.split(content)


def content_lines(content: str) -> list[str]:
    """Split like ``split_lines`` and drop blank lines."""
    return [line for line in split_lines(content) if line.strip()]


def find_header_row(lines: list[str], required: list[str], limit: int = 20) -> int:
    """Return the index of the first of ``limit`` lines containing every required
    column name (case-insensitive substring), or -1."""
    wanted = [col.lower() for col in required]
    for i, line in enumerate(lines[:limit]):
        lower = line.lower()
        if all(col in lower for col in wanted):
            return i
    return -1


def decode_content(data: bytes | str) -> str:
    """Decode raw file bytes. UTF-8 (BOM tolerated) first, Latin-1 as a last resort."""
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")
