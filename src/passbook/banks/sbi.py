"""State Bank of India CSV account statement."""

from passbook.banks.delimited import DelimitedParser, Scoring

sbi = DelimitedParser(
    key="sbi",
    name="State Bank of India",
    required_headers=["txn date", "description", "balance"],
    aliases={
        "date": ["txn date"],
        "value_date": ["value date"],
        "narration": ["description"],
        "ref_no": ["ref no"],
        "withdrawal": ["debit"],
        "deposit": ["credit"],
        "closing_balance": ["balance"],
    },
    name_pattern=r"state bank|(?<![a-z0-9])sbi(?![a-z0-9])",
    filename_pattern=r"(?<![a-z0-9])sbi(?![a-z0-9])",
    scoring=Scoring(both=0.9, header_only=0.5, name_only=0.3),
)
