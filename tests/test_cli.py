import json
from pathlib import Path

from typer.testing import CliRunner

from passbook.cli import app

FIXTURES = Path(__file__).parent / "fixtures"

runner = CliRunner()


def _init(tmp_path, monkeypatch):
    """Point settings at tmp_path and run init with a custom data dir."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr("passbook.settings.CONFIG_DIR", config_dir)
    monkeypatch.setattr("passbook.settings.SETTINGS_PATH", config_dir / "settings.json")
    data_dir = tmp_path / "data"
    result = runner.invoke(app, ["init", "--data-dir", str(data_dir)])
    assert result.exit_code == 0
    return data_dir


def test_init_creates_data_dir_and_db(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    assert (data_dir / "passbook.db").exists()
    assert (tmp_path / "config" / "settings.json").exists()


def test_init_is_idempotent(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["init", "--data-dir", str(data_dir)])
    assert result.exit_code == 0


def test_import_command(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["import", str(FIXTURES / "hdfc_statement_apr24.txt")])
    assert result.exit_code == 0
    assert "HDFC Bank: 8 imported, 0 skipped of 8" in result.output


def test_import_command_reports_duplicates(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    runner.invoke(app, ["import", str(FIXTURES / "hdfc_statement_apr24.txt")])
    result = runner.invoke(app, ["import", str(FIXTURES / "hdfc_statement_apr24.txt")])
    assert result.exit_code == 0
    assert "1 imported, 7 skipped of 8" in result.output


def test_import_unsupported_file_fails(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["import", str(FIXTURES / "unknown.csv")])
    assert result.exit_code == 1
    assert "Could not detect bank format" in result.output


def test_import_generic(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["import", str(FIXTURES / "generic.csv"), "--generic"])
    assert result.exit_code == 0
    assert "generic CSV: 3 imported, 1 skipped of 4" in result.output


def test_import_generic_without_required_columns_fails(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["import", str(FIXTURES / "unknown.csv"), "--generic"])
    assert result.exit_code == 1
    assert "Date" in result.output


def test_detect_command():
    result = runner.invoke(app, ["detect", str(FIXTURES / "bob_statement.csv")])
    assert result.exit_code == 0
    assert "Selected: Bank of Baroda (bob)" in result.output


def test_detect_command_no_match():
    result = runner.invoke(app, ["detect", str(FIXTURES / "unknown.csv")])
    assert result.exit_code == 0
    assert "No bank format detected" in result.output


def test_banks_command():
    result = runner.invoke(app, ["banks"])
    assert result.exit_code == 0
    assert "hdfc-text" in result.output
    assert "federal" in result.output


def test_recategorize_command(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    runner.invoke(app, ["import", str(FIXTURES / "hdfc_statement_apr24.txt")])
    result = runner.invoke(app, ["recategorize"])
    assert result.exit_code == 0
    assert "8 transactions recategorized" in result.output


def test_transactions_command(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    runner.invoke(app, ["import", str(FIXTURES / "kotak_statement.csv")])
    result = runner.invoke(app, ["transactions", "--limit", "2"])
    assert result.exit_code == 0
    assert "Transactions" in result.output


def test_categories_add_list_delete(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)

    result = runner.invoke(app, ["categories", "add", "Pets", "--group", "living_expenditure"])
    assert result.exit_code == 0
    assert "Added category: Pets" in result.output

    result = runner.invoke(app, ["categories", "add", "Pets"])
    assert result.exit_code == 1
    assert "already exists" in result.output

    result = runner.invoke(app, ["categories", "list"])
    assert result.exit_code == 0
    assert "Pets" in result.output

    result = runner.invoke(app, ["categories", "delete", "Pets"])
    assert result.exit_code == 0
    result = runner.invoke(app, ["categories", "delete", "Pets"])
    assert result.exit_code == 1


def test_rules_add_and_list(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)

    result = runner.invoke(
        app, ["rules", "add", "--category", "Travel", "--keyword", "makemytrip", "--priority", "9"],
    )
    assert result.exit_code == 0
    assert "Travel" in result.output

    result = runner.invoke(app, ["rules", "list"])
    assert result.exit_code == 0
    assert "makemytrip" in result.output


def test_rules_add_amount_condition(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, [
        "rules", "add", "--category", "Other", "--field", "withdrawal",
        "--op", "between", "--value", "100", "--value2", "200",
    ])
    assert result.exit_code == 0


def test_rules_add_rejects_bad_input(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)

    result = runner.invoke(app, ["rules", "add", "--category", "Nope", "--keyword", "x"])
    assert result.exit_code == 1
    assert "Unknown category" in result.output

    result = runner.invoke(app, ["rules", "add", "--category", "Other", "--field", "withdrawal", "--op", "gt"])
    assert result.exit_code == 1
    assert "condition_value" in result.output


def test_rules_delete_unknown(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["rules", "delete", "99999"])
    assert result.exit_code == 1


def test_rules_export_and_import(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    out = tmp_path / "rules.json"

    result = runner.invoke(app, ["rules", "export", str(out)])
    assert result.exit_code == 0
    payload = json.loads(out.read_text())
    assert payload["rules"]

    result = runner.invoke(app, ["rules", "import", str(out)])
    assert result.exit_code == 0
    assert f"0 rules imported, {len(payload['rules'])} skipped" in result.output


def test_rules_import_invalid_file(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    result = runner.invoke(app, ["rules", "import", str(bad)])
    assert result.exit_code == 1
    assert "Invalid rules file" in result.output


def _transaction_ids(data_dir):
    from passbook.db import fetch_transactions, get_connection

    conn = get_connection(data_dir / "passbook.db")
    by_narration = {t.narration: t.id for t in fetch_transactions(conn)}
    conn.close()
    return by_narration


def _rule_id(data_dir, keyword):
    from passbook.db import fetch_rules, get_connection

    conn = get_connection(data_dir / "passbook.db")
    rule_id = [r.id for r in fetch_rules(conn) if r.keyword == keyword][0]
    conn.close()
    return rule_id


def test_rules_add_apply_existing(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    runner.invoke(app, ["import", str(FIXTURES / "kotak_statement.csv")])
    result = runner.invoke(
        app, ["rules", "add", "--category", "Family & Friends", "--keyword", "rahul", "--apply-existing"],
    )
    assert result.exit_code == 0
    assert "1 existing transactions moved to Family & Friends" in result.output


def test_rules_edit(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    runner.invoke(app, ["rules", "add", "--category", "Travel", "--keyword", "makemytrip"])
    rule_id = _rule_id(data_dir, "makemytrip")

    result = runner.invoke(app, [
        "rules", "edit", str(rule_id), "--keyword", "goibibo", "--priority", "12",
        "--field", "withdrawal", "--op", "gt", "--value", "500",
    ])
    assert result.exit_code == 0
    assert f"Updated rule {rule_id}" in result.output
    assert _rule_id(data_dir, "goibibo") == rule_id

    result = runner.invoke(app, ["rules", "list"])
    assert "goibibo" in result.output
    assert "withdrawal gt 500" in result.output

    result = runner.invoke(app, ["rules", "edit", str(rule_id), "--keyword", "", "--no-condition"])
    assert result.exit_code == 1
    assert "needs a keyword" in result.output


def test_rules_edit_unknown(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["rules", "edit", "99999", "--priority", "1"])
    assert result.exit_code == 1
    assert "Unknown rule" in result.output


def test_categories_edit(tmp_path, monkeypatch):
    _init(tmp_path, monkeypatch)
    result = runner.invoke(app, ["categories", "edit", "Travel", "--name", "Trips", "--color", "#123456"])
    assert result.exit_code == 0
    assert "Updated category: Trips" in result.output

    result = runner.invoke(app, ["categories", "list"])
    assert "Trips" in result.output

    result = runner.invoke(app, ["categories", "edit", "Travel", "--icon", "plane"])
    assert result.exit_code == 1
    assert "Unknown category" in result.output


def test_set_category_learns_rule(tmp_path, monkeypatch):
    data_dir = _init(tmp_path, monkeypatch)
    runner.invoke(app, ["import", str(FIXTURES / "kotak_statement.csv")])
    txn_id = _transaction_ids(data_dir)["IMPS/P2A/409312345678/RAHUL"]

    result = runner.invoke(app, ["set-category", str(txn_id), "Family & Friends", "--merchant", "Rahul"])
    assert result.exit_code == 0
    assert f"Transaction {txn_id} → Family & Friends" in result.output
    assert "Added rule: 'Rahul' → Family & Friends" in result.output

    result = runner.invoke(app, ["set-category", str(txn_id), "Nope"])
    assert result.exit_code == 1
    assert "Unknown category" in result.output
