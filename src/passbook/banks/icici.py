"""ICICI Bank CSV account statement."""

from passbook.banks.delimited import DelimitedParser, Scoring

icici = DelimitedParser(
    key="icici",
    name="ICICI Bank",
    required_headers=["transaction date", "transaction remarks", "balance"],
    aliases={
        "date": ["transaction date"],
        "value_date": ["value date"],
        "narration": ["transaction remarks"],
        "ref_no": ["cheque number"],
        "withdrawal": ["withdrawal amount"],
        "deposit": ["deposit amount"],
        "closing_balance": ["balance"],
    },
    name_pattern=r"icici",
    scoring=Scoring(both=0.9, header_only=0.5, name_only=0.3),
)
