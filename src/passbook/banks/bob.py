"""Bank of Baroda CSV account statement.

A single "Tran Amount" column holds both debits and credits; the "Cr/Dr"
column says which.
"""

from passbook.banks.delimited import DelimitedParser, Scoring

bob = DelimitedParser(
    key="bob",
    name="Bank of Baroda",
    required_headers=["tran date", "particulars", "tran amount", "balance"],
    aliases={
        "date": ["tran date"],
        "narration": ["particulars"],
        "amount": ["tran amount"],
        "indicator": ["cr/dr"],
        "closing_balance": ["balance"],
    },
    name_pattern=r"bank of baroda|(?<![a-z0-9])bob(?![a-z0-9])",
    filename_pattern=r"(?<![a-z0-9])bob(?![a-z0-9])",
    scoring=Scoring(both=0.85, header_only=0.5, name_only=0.3),
)
