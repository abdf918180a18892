"""HDFC Bank: plain-text (fixed-width) and CSV account statements."""

from passbook.banks.delimited import DelimitedParser, Scoring
from passbook.banks.fixed_width import (
    DATE_PREFIX, IGNORE, Columns, FixedWidthParser, NoiseRule, contains, matches,
)

# Column layout of the plain-text export:
# Date | Narration | Chq./Ref.No. | Value Dt | Withdrawal Amt. | Deposit Amt. | Closing Balance
TEXT_COLUMNS = Columns(
    date=(0, 10),
    narration=(10, 52),
    ref_no=(52, 68),
    value_date=(68, 78),
    withdrawal=(78, 98),
    deposit=(98, 118),
    closing_balance=(118, None),
)

FOOTER_RULES = [
    NoiseRule("statement summary", contains("STATEMENT SUMMARY")),
    NoiseRule("opening balance", contains("Opening Balance")),
    NoiseRule("computer generated", contains("computer generated statement")),
    NoiseRule("signature disclaimer", contains("does not require")),
    NoiseRule("correctness disclaimer", contains("considered correct")),
    NoiseRule("gstin", contains("GSTIN number")),
    NoiseRule("asterisk rule", matches(r"^\s*\*{8,}")),
    NoiseRule("end of statement", contains("End Of Statement")),
    NoiseRule("generated on", contains("Generated On:")),
    NoiseRule("registered office", contains("Registered Office")),
]

PAGE_HEADER_RULES = [
    NoiseRule("bank banner", contains("HDFC BANK Ltd.")),
    NoiseRule("page number", contains("Page No")),
    NoiseRule("statement title", contains("Statement of accounts")),
    NoiseRule("account branch", contains("Account Branch")),
    NoiseRule("address", contains("Address")),
    NoiseRule("joint holders", contains("JOINT HOLDERS")),
    NoiseRule("nomination", contains("Nomination")),
    NoiseRule("statement period", contains("Statement From")),
    NoiseRule("branch code", contains("Branch Code")),
    NoiseRule("account type", contains("Account Type")),
    NoiseRule("account number", contains("Account No")),
    NoiseRule("open date", contains("A/C Open Date")),
    NoiseRule("account status", contains("Account Status")),
    NoiseRule("customer id", contains("Cust ID")),
    NoiseRule("od limit", contains("OD Limit")),
    NoiseRule("phone", contains("Phone no.")),
    NoiseRule("email", contains("Email")),
    NoiseRule("ifsc", contains("RTGS/NEFT IFSC")),
    NoiseRule("city", matches(r"\bCity\s*:")),
    NoiseRule("state", matches(r"\bState\s*:")),
    NoiseRule("account holder", matches(r"^\s*(MR|MRS|MS)\.\s")),
    NoiseRule("preferred customer", contains("Preferred Customer")),
    NoiseRule("lone dot", matches(r"^\s*\.\s*$")),
    NoiseRule("continued", contains("**Continue**")),
    NoiseRule("earmarked funds", contains("earmarked")),
    NoiseRule("funds note", contains("includes funds")),
]


def _masked_continuation(line: str) -> bool:
    return not DATE_PREFIX.match(line[:10]) and line[10:52].strip().startswith("*****")


# Masked narration fragments printed under some UPI entries. A dated row is a
# record even when its own narration starts masked.
FILLER_RULES = [
    NoiseRule("masked narration", _masked_continuation, IGNORE),
]

NOISE_RULES = FOOTER_RULES + PAGE_HEADER_RULES + FILLER_RULES

hdfc_text = FixedWidthParser(
    key="hdfc-text",
    name="HDFC Bank",
    columns=TEXT_COLUMNS,
    noise_rules=NOISE_RULES,
    marker="HDFC BANK Ltd.",
    filename_pattern=r"hdfc",
)

hdfc_csv = DelimitedParser(
    key="hdfc-csv",
    name="HDFC Bank",
    required_headers=["date", "narration", "closing balance"],
    aliases={
        "date": ["date"],
        "narration": ["narration"],
        "ref_no": ["chq", "ref"],
        "value_date": ["value dat", "value dt"],
        "withdrawal": ["withdrawal", "debit"],
        "deposit": ["deposit", "credit"],
        "closing_balance": ["closing balance"],
    },
    name_pattern=r"hdfc",
    scoring=Scoring(both=0.85, header_only=0.7, name_only=0.0),
    header_hint="chq",
)
