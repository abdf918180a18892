"""Federal Bank CSV account statement."""

from passbook.banks.delimited import DelimitedParser

federal = DelimitedParser(
    key="federal",
    name="Federal Bank",
    required_headers=["transaction date", "description", "debit", "credit", "balance"],
    aliases={
        "date": ["transaction date"],
        "narration": ["description"],
        "withdrawal": ["debit"],
        "deposit": ["credit"],
        "closing_balance": ["balance"],
    },
    name_pattern=r"federal\s*bank",
    filename_pattern=r"federal",
)
