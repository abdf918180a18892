"""Punjab National Bank CSV account statement. The export carries no reference column."""

from passbook.banks.delimited import DelimitedParser

pnb = DelimitedParser(
    key="pnb",
    name="Punjab National Bank",
    required_headers=["transaction date", "description", "debit", "credit", "balance"],
    aliases={
        "date": ["transaction date"],
        "value_date": ["value date"],
        "narration": ["description"],
        "withdrawal": ["debit"],
        "deposit": ["credit"],
        "closing_balance": ["balance"],
    },
    name_pattern=r"punjab national|(?<![a-z0-9])pnb(?![a-z0-9])",
    filename_pattern=r"(?<![a-z0-9])pnb(?![a-z0-9])",
)
