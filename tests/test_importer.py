from pathlib import Path

import pytest

from passbook.db import fetch_transactions, insert_transactions
from passbook.errors import EMPTY_RESULT, EmptyResult, UnsupportedFormat
from passbook.importer import import_file, import_statement
from passbook.models import ParsedTransaction

FIXTURES = Path(__file__).parent / "fixtures"

HDFC_HEADER = "Date,Narration,Chq./Ref.No.,Value Dt,Withdrawal Amt.,Deposit Amt.,Closing Balance"


def _count(conn) -> int:
    return conn.execute("SELECT count(*) FROM transactions").fetchone()[0]


def test_import_fixed_width_statement(db):
    result = import_file(db, FIXTURES / "hdfc_statement_apr24.txt")
    assert result == {
        "imported": 8, "skipped": 0, "duplicates": 0, "rows_skipped": 0,
        "total": 8, "bank": "HDFC Bank",
    }
    assert _count(db) == 8


def test_import_categorizes_and_extracts_merchant(db):
    import_file(db, FIXTURES / "hdfc_statement_apr24.txt")
    by_ref = {t.ref_no: t for t in fetch_transactions(db)}

    swiggy = by_ref["0000409112345678"]
    assert swiggy.category == "Food & Dining"
    assert swiggy.merchant == "SWIGGY"

    salary = by_ref["SBIN424091234567"]
    assert salary.category == "Salary/Income"
    assert salary.merchant == "ACME"

    assert by_ref["0000409512345678"].category == "ATM Withdrawal"
    assert by_ref["0000411012345678"].merchant == "ZOMATO"
    assert by_ref[""].category == "Other"


def test_reimport_skips_known_refs_but_keeps_rows_without_ref(db):
    import_file(db, FIXTURES / "hdfc_statement_apr24.txt")
    result = import_file(db, FIXTURES / "hdfc_statement_apr24.txt")
    assert result["imported"] == 1
    assert result["duplicates"] == 7
    assert result["skipped"] == 7
    assert result["total"] == 8
    assert _count(db) == 9


def test_existing_ref_skips_every_row_carrying_it(db):
    insert_transactions(db, [(ParsedTransaction(date="2024-03-01", narration="OLD", ref_no="REF1"), "Other", "")])
    db.commit()
    content = "\n".join([
        "HDFC Bank",
        HDFC_HEADER,
        "01/04/24,UPI-SWIGGY-ONE,REF1,01/04/24,100.00,,900.00",
        "02/04/24,UPI-SWIGGY-TWO,REF1,02/04/24,100.00,,800.00",
    ])
    result = import_statement(db, content, "hdfc.csv")
    assert result["imported"] == 0
    assert result["skipped"] == 2
    assert result["total"] == 2
    assert _count(db) == 1


def test_skipped_counts_duplicates_and_malformed_rows(db):
    insert_transactions(db, [(ParsedTransaction(date="2024-03-01", narration="OLD", ref_no="REF1"), "Other", "")])
    db.commit()
    content = "\n".join([
        "HDFC Bank",
        HDFC_HEADER,
        "01/04/24,UPI-SWIGGY-ONE,REF1,01/04/24,100.00,,900.00",
        ",,,,,,",
        "03/04/24,UPI-ZOMATO-THREE,REF3,03/04/24,50.00,,850.00",
    ])
    result = import_statement(db, content, "hdfc.csv")
    assert result["imported"] == 1
    assert result["duplicates"] == 1
    assert result["rows_skipped"] == 1
    assert result["skipped"] == 2
    assert result["total"] == 3


def test_refs_within_one_file_are_not_deduplicated(db):
    content = "\n".join([
        "HDFC Bank",
        HDFC_HEADER,
        "01/04/24,UPI-A,REF9,01/04/24,1.00,,9.00",
        "01/04/24,UPI-B,REF9,01/04/24,1.00,,8.00",
    ])
    assert import_statement(db, content, "hdfc.csv")["imported"] == 2


def test_empty_result_reports_bank_and_writes_nothing(db):
    content = "\n".join(["HDFC Bank", HDFC_HEADER, "Opening Balance,,,,,,"])
    with pytest.raises(EmptyResult) as exc_info:
        import_statement(db, content, "hdfc.csv")
    assert exc_info.value.kind == EMPTY_RESULT
    assert exc_info.value.bank == "HDFC Bank"
    assert "detected bank: HDFC Bank" in str(exc_info.value)
    assert _count(db) == 0


def test_unsupported_format(db):
    with pytest.raises(UnsupportedFormat) as exc_info:
        import_file(db, FIXTURES / "unknown.csv")
    assert "HDFC Bank" in exc_info.value.banks
    assert _count(db) == 0


def test_import_accepts_bytes_with_bom(db):
    content = (FIXTURES / "kotak_statement.csv").read_bytes()
    result = import_statement(db, b"\xef\xbb\xbf" + content, "kotak_statement.csv")
    assert result["bank"] == "Kotak Mahindra Bank"
    assert result["imported"] == 3


def test_default_category_override(db):
    import_file(db, FIXTURES / "hdfc_statement_apr24.txt", default_category="Uncategorized")
    by_ref = {t.ref_no: t for t in fetch_transactions(db)}
    assert by_ref[""].category == "Uncategorized"


def test_failed_insert_rolls_back_whole_batch(db, monkeypatch):
    import passbook.importer as importer

    real_insert = importer.insert_transactions

    def insert_then_fail(conn, rows):
        real_insert(conn, rows)
        raise RuntimeError("disk full")

    monkeypatch.setattr(importer, "insert_transactions", insert_then_fail)
    with pytest.raises(RuntimeError):
        import_file(db, FIXTURES / "hdfc_statement_apr24.txt")
    assert _count(db) == 0


@pytest.mark.parametrize("fixture, bank, imported", [
    ("sbi_statement.csv", "State Bank of India", 4),
    ("axis_statement.csv", "Axis Bank", 4),
    ("bob_statement.csv", "Bank of Baroda", 4),
    ("federal_statement.csv", "Federal Bank", 3),
])
def test_import_delimited_fixtures(db, fixture, bank, imported):
    result = import_file(db, FIXTURES / fixture)
    assert result["bank"] == bank
    assert result["imported"] == imported
