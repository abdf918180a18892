"""Classified failures raised by the import pipeline.

Fatal failures are exceptions carrying a stable ``kind``. Per-row outcomes
(skipped rows, duplicate references) never raise; the importer only counts
them under the ``Outcome`` names below.
"""

UNSUPPORTED_FORMAT = "unsupported_format"
EMPTY_RESULT = "empty_result"


class Outcome:
    ROW_SKIPPED = "row_skipped"
    DUPLICATE_SKIPPED = "duplicate_skipped"


class PassbookError(Exception):
    kind = "error"

    def __init__(self, message: str, kind: str | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class UnsupportedFormat(PassbookError):
    """No registered parser scored at or above the detection threshold."""

    kind = UNSUPPORTED_FORMAT

    def __init__(self, banks: list[str]):
        self.banks = banks
        supported = ", ".join(banks) if banks else "none registered"
        super().__init__(
            "Could not detect bank format. Use the generic CSV import instead, "
            f"or make sure the file comes from a supported bank ({supported})."
        )


class EmptyResult(PassbookError):
    """A parser claimed the file but produced no transactions."""

    kind = EMPTY_RESULT

    def __init__(self, bank: str):
        self.bank = bank
        super().__init__(f"No transactions found in file (detected bank: {bank})")
