import pytest

from passbook.db import (
    DEFAULT_CATEGORIES, DEFAULT_RULES, add_category, add_rule, atomic, delete_category,
    delete_rule, fetch_existing_ref_nos, fetch_rules, fetch_transactions, find_keyword_rule,
    get_category_id, get_connection, get_rule, get_transaction, init_db, insert_transactions,
    list_categories, set_transaction_category, update_category, update_rule, validate_rule,
)
from passbook.models import CategoryRule, ParsedTransaction


def test_init_db_creates_tables(tmp_path):
    conn = get_connection(tmp_path / "test.db")
    init_db(conn)

    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = [row[0] for row in cursor.fetchall()]
    assert "categories" in tables
    assert "category_rules" in tables
    assert "transactions" in tables


def test_init_db_is_idempotent(tmp_path):
    conn = get_connection(tmp_path / "test.db")
    init_db(conn)
    init_db(conn)  # Should not raise or reseed

    assert conn.execute("SELECT count(*) FROM categories").fetchone()[0] == len(DEFAULT_CATEGORIES)
    assert conn.execute("SELECT count(*) FROM category_rules").fetchone()[0] == len(DEFAULT_RULES)


def test_default_category_is_seeded(db):
    assert get_category_id(db, "Other") is not None
    groups = {c.name: c.group for c in list_categories(db)}
    assert groups["Salary/Income"] == "income"
    assert groups["Investments"] == "investment"


def test_wal_and_foreign_keys_enabled(db):
    assert db.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
    assert db.execute("PRAGMA foreign_keys").fetchone()[0] == 1


def test_insert_and_fetch_transactions(db):
    rows = [
        (ParsedTransaction(date="2024-04-01", narration="A", ref_no="R1", withdrawal=10.0), "Other", ""),
        (ParsedTransaction(date="2024-04-03", narration="B", deposit=5.0), "Salary/Income", "ACME"),
    ]
    with atomic(db):
        assert insert_transactions(db, rows) == 2

    txns = fetch_transactions(db)
    assert [t.narration for t in txns] == ["B", "A"]
    assert txns[0].merchant == "ACME"
    assert txns[1].withdrawal == 10.0
    assert len(fetch_transactions(db, limit=1)) == 1


def test_fetch_existing_ref_nos_ignores_blank(db):
    with atomic(db):
        insert_transactions(db, [
            (ParsedTransaction(date="2024-04-01", narration="A", ref_no="R1"), "Other", ""),
            (ParsedTransaction(date="2024-04-01", narration="B", ref_no=""), "Other", ""),
        ])
    assert fetch_existing_ref_nos(db) == {"R1"}


def test_atomic_rolls_back_on_error(db):
    with pytest.raises(RuntimeError):
        with atomic(db):
            insert_transactions(db, [(ParsedTransaction(date="2024-04-01", narration="A"), "Other", "")])
            raise RuntimeError("boom")
    assert fetch_transactions(db) == []


def test_add_category(db):
    new_id = add_category(db, "Pets", color="#123456", group="living_expenditure")
    assert get_category_id(db, "Pets") == new_id


def test_add_category_rejects_duplicate_and_empty(db):
    with pytest.raises(ValueError, match="already exists"):
        add_category(db, "Other")
    with pytest.raises(ValueError, match="must not be empty"):
        add_category(db, "   ")


def test_delete_category_cascades_rules(db):
    food_id = get_category_id(db, "Food & Dining")
    delete_category(db, "Food & Dining")
    assert get_category_id(db, "Food & Dining") is None
    assert all(r.category_id != food_id for r in fetch_rules(db))


def test_delete_unknown_category(db):
    with pytest.raises(ValueError, match="Unknown category"):
        delete_category(db, "Nope")


def test_fetch_rules_ordered_by_priority_then_id(db):
    rules = fetch_rules(db)
    keys = [(-r.priority, r.id) for r in rules]
    assert keys == sorted(keys)
    assert rules[0].category_name == "Salary/Income"  # "salary" is the only priority-15 seed


def test_add_and_delete_rule(db):
    rule_id = add_rule(db, CategoryRule(
        id=None, category_id=get_category_id(db, "Other"), priority=1,
        condition_field="deposit", condition_op="between", condition_value=1, condition_value2=2,
    ))
    added = [r for r in fetch_rules(db) if r.id == rule_id][0]
    assert added.keyword is None
    assert added.condition_value2 == 2

    delete_rule(db, rule_id)
    assert all(r.id != rule_id for r in fetch_rules(db))
    with pytest.raises(ValueError, match="Unknown rule"):
        delete_rule(db, rule_id)


@pytest.mark.parametrize("rule, message", [
    (CategoryRule(id=None, category_id=1), "needs a keyword"),
    (CategoryRule(id=None, category_id=1, condition_field="balance", condition_op="gt",
                  condition_value=1), "condition_field"),
    (CategoryRule(id=None, category_id=1, condition_field="withdrawal", condition_op="ne",
                  condition_value=1), "condition_op"),
    (CategoryRule(id=None, category_id=1, condition_field="withdrawal", condition_op="gt"),
     "condition_value is required"),
    (CategoryRule(id=None, category_id=1, condition_field="withdrawal", condition_op="between",
                  condition_value=1), "condition_value2"),
])
def test_validate_rule_rejects(rule, message):
    with pytest.raises(ValueError, match=message):
        validate_rule(rule)


def test_validate_rule_keyword_only_is_valid():
    validate_rule(CategoryRule(id=None, category_id=1, keyword="swiggy"))


def test_update_rule(db):
    rule_id = add_rule(db, CategoryRule(id=None, category_id=get_category_id(db, "Other"), keyword="misc"))
    rule = get_rule(db, rule_id)
    rule.keyword = None
    rule.category_id = get_category_id(db, "Travel")
    rule.priority = 7
    rule.condition_field, rule.condition_op, rule.condition_value = "withdrawal", "gte", 1000.0
    update_rule(db, rule)

    updated = get_rule(db, rule_id)
    assert updated.keyword is None
    assert updated.category_name == "Travel"
    assert updated.priority == 7
    assert (updated.condition_field, updated.condition_op, updated.condition_value) == ("withdrawal", "gte", 1000.0)


def test_update_rule_rejects_invalid_and_unknown(db):
    rule_id = add_rule(db, CategoryRule(id=None, category_id=get_category_id(db, "Other"), keyword="misc"))
    with pytest.raises(ValueError, match="needs a keyword"):
        update_rule(db, CategoryRule(id=rule_id, category_id=get_category_id(db, "Other")))
    assert get_rule(db, rule_id).keyword == "misc"
    with pytest.raises(ValueError, match="Unknown rule"):
        update_rule(db, CategoryRule(id=99999, category_id=1, keyword="x"))


def test_find_keyword_rule_is_case_insensitive(db):
    food = get_category_id(db, "Food & Dining")
    assert find_keyword_rule(db, food, "SWIGGY").keyword == "swiggy"
    assert find_keyword_rule(db, get_category_id(db, "Travel"), "swiggy") is None


def test_update_category_renames_and_relabels_transactions(db):
    insert_transactions(db, [
        (ParsedTransaction(date="2024-04-01", narration="IRCTC TICKET"), "Travel", ""),
        (ParsedTransaction(date="2024-04-02", narration="UPI-SWIGGY"), "Food & Dining", ""),
    ])
    db.commit()
    add_rule(db, CategoryRule(id=None, category_id=get_category_id(db, "Travel"), keyword="makemytrip"))
    rules_before = [r.id for r in fetch_rules(db) if r.category_name == "Travel"]
    assert rules_before

    category = update_category(db, "Travel", new_name="Trips", color="#000000", group="other")
    assert (category.name, category.color, category.icon, category.group) == ("Trips", "#000000", "plane", "other")
    assert get_category_id(db, "Travel") is None
    assert sorted(t.category for t in fetch_transactions(db)) == ["Food & Dining", "Trips"]
    assert [r.id for r in fetch_rules(db) if r.category_name == "Trips"] == rules_before


def test_update_category_rejects(db):
    with pytest.raises(ValueError, match="Unknown category"):
        update_category(db, "Nope", color="#000000")
    with pytest.raises(ValueError, match="already exists"):
        update_category(db, "Travel", new_name="Shopping")
    with pytest.raises(ValueError, match="must not be empty"):
        update_category(db, "Travel", new_name="  ")


def test_set_transaction_category(db):
    insert_transactions(db, [(ParsedTransaction(date="2024-04-01", narration="POS 1234 CAFE"), "Other", "")])
    db.commit()
    txn_id = fetch_transactions(db)[0].id

    updated = set_transaction_category(db, txn_id, category="Food & Dining", merchant="Blue Tokai")
    assert (updated.category, updated.merchant) == ("Food & Dining", "Blue Tokai")
    assert get_transaction(db, txn_id).category == "Food & Dining"

    with pytest.raises(ValueError, match="Unknown transaction"):
        set_transaction_category(db, 99999, category="Other")
    with pytest.raises(ValueError, match="Nothing to update"):
        set_transaction_category(db, txn_id)
