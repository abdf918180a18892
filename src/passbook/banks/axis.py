"""Axis Bank CSV account statement. No value-date column; the transaction date is reused."""

from passbook.banks.delimited import DelimitedParser, Scoring

axis = DelimitedParser(
    key="axis",
    name="Axis Bank",
    required_headers=["tran date", "particulars", "bal"],
    aliases={
        "date": ["tran date"],
        "ref_no": ["chqno"],
        "narration": ["particulars"],
        "withdrawal": ["dr amount"],
        "deposit": ["cr amount"],
        "closing_balance": ["bal"],
    },
    name_pattern=r"axis",
    scoring=Scoring(both=0.9, header_only=0.5, name_only=0.3),
)
