"""Yes Bank CSV account statement."""

from passbook.banks.delimited import DelimitedParser

yes_bank = DelimitedParser(
    key="yes-bank",
    name="Yes Bank",
    required_headers=["transaction date", "description", "debit", "credit", "balance"],
    aliases={
        "date": ["transaction date"],
        "value_date": ["value date"],
        "narration": ["description"],
        "ref_no": ["cheque"],
        "withdrawal": ["debit"],
        "deposit": ["credit"],
        "closing_balance": ["balance"],
    },
    name_pattern=r"yes\s*bank",
    filename_pattern=r"yes.?bank",
)
