"""Kotak Mahindra Bank CSV account statement."""

from passbook.banks.delimited import DelimitedParser

# Header-only matches score 0: these column names appear in most exports.
kotak = DelimitedParser(
    key="kotak",
    name="Kotak Mahindra Bank",
    required_headers=["date", "description", "debit", "credit", "balance"],
    aliases={
        "date": ["date"],
        "narration": ["description"],
        "ref_no": ["chq"],
        "withdrawal": ["debit"],
        "deposit": ["credit"],
        "closing_balance": ["balance"],
    },
    name_pattern=r"kotak",
)
