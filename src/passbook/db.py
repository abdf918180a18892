import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from passbook.models import Category, CategoryRule, ParsedTransaction, Transaction

SCHEMA = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    color TEXT NOT NULL DEFAULT '#6b7280',
    icon TEXT NOT NULL DEFAULT 'tag',
    category_group TEXT NOT NULL DEFAULT 'other'
);

CREATE TABLE IF NOT EXISTS category_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category_id INTEGER NOT NULL,
    keyword TEXT,
    priority INTEGER NOT NULL DEFAULT 0,
    condition_field TEXT,
    condition_op TEXT,
    condition_value REAL,
    condition_value2 REAL,
    created_at TEXT DEFAULT (datetime('now')),
    FOREIGN KEY (category_id) REFERENCES categories(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date TEXT NOT NULL,
    narration TEXT NOT NULL,
    ref_no TEXT,
    value_date TEXT,
    withdrawal REAL DEFAULT 0,
    deposit REAL DEFAULT 0,
    closing_balance REAL DEFAULT 0,
    category TEXT DEFAULT 'Other',
    merchant TEXT DEFAULT '',
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_transactions_ref_no ON transactions(ref_no);
"""

CONDITION_FIELDS = ("withdrawal", "deposit")
CONDITION_OPS = ("gt", "lt", "gte", "lte", "eq", "between")

# (name, color, icon, group)
DEFAULT_CATEGORIES = [
    ("Food & Dining", "#ef4444", "utensils", "living_expenditure"),
    ("Shopping", "#f97316", "shopping-bag", "living_expenditure"),
    ("Transport", "#eab308", "car", "living_expenditure"),
    ("Bills & Utilities", "#84cc16", "receipt", "living_expenditure"),
    ("Transfers", "#22c55e", "arrow-right-left", "other"),
    ("Salary/Income", "#10b981", "banknote", "income"),
    ("Entertainment", "#06b6d4", "tv", "living_expenditure"),
    ("Health", "#3b82f6", "heart-pulse", "living_expenditure"),
    ("Education", "#8b5cf6", "graduation-cap", "living_expenditure"),
    ("ATM Withdrawal", "#a855f7", "landmark", "other"),
    ("Credit Card", "#d946ef", "credit-card", "loan"),
    ("Taxes & Charges", "#f43f5e", "percent", "other"),
    ("Investments", "#0ea5e9", "trending-up", "investment"),
    ("Vices", "#b91c1c", "cigarette", "living_expenditure"),
    ("Subscriptions", "#7c3aed", "repeat", "living_expenditure"),
    ("Family & Friends", "#f59e0b", "users", "other"),
    ("Loans", "#64748b", "hand-coins", "loan"),
    ("Grocery", "#16a34a", "shopping-cart", "living_expenditure"),
    ("Real Estate", "#854d0e", "building", "investment"),
    ("CCBILL", "#0369a1", "credit-card", "loan"),
    ("Gold", "#ca8a04", "coins", "investment"),
    ("Car", "#475569", "car", "living_expenditure"),
    ("Fraud", "#dc2626", "alert-triangle", "other"),
    ("Travel", "#0891b2", "plane", "living_expenditure"),
    ("Other", "#6b7280", "tag", "other"),
]

# (category name, keyword, priority)
DEFAULT_RULES = [
    ("Food & Dining", "swiggy", 10),
    ("Food & Dining", "zomato", 10),
    ("Food & Dining", "blinkit", 8),
    ("Food & Dining", "zepto", 8),
    ("Food & Dining", "instamart", 8),
    ("Food & Dining", "licious", 5),
    ("Food & Dining", "bigbasket", 5),
    ("Food & Dining", "dunzo", 5),
    ("Shopping", "amazon", 10),
    ("Shopping", "flipkart", 10),
    ("Shopping", "myntra", 10),
    ("Shopping", "ajio", 10),
    ("Shopping", "meesho", 10),
    ("Shopping", "google play", 5),
    ("Transport", "uber", 10),
    ("Transport", "rapido", 10),
    ("Transport", "irctc", 10),
    ("Transport", "fuel", 5),
    ("Transport", "petrol", 5),
    ("Bills & Utilities", "bbps", 8),
    ("Bills & Utilities", "electricity", 8),
    ("Bills & Utilities", "broadband", 8),
    ("Bills & Utilities", "jio", 5),
    ("Bills & Utilities", "airtel", 5),
    ("Bills & Utilities", "vodafone", 5),
    ("Bills & Utilities", "locker rent", 5),
    ("Transfers", "transfer", 5),
    ("Transfers", "payment from phone", 1),
    ("Salary/Income", "salary", 15),
    ("Salary/Income", "neft cr", 10),
    ("Salary/Income", "interest paid", 8),
    ("Entertainment", "netflix", 10),
    ("Entertainment", "hotstar", 10),
    ("Entertainment", "spotify", 10),
    ("Entertainment", "youtube", 8),
    ("Health", "pharma", 8),
    ("Health", "medical", 8),
    ("Health", "hospital", 8),
    ("Health", "apollo", 8),
    ("Education", "udemy", 8),
    ("Education", "coursera", 8),
    ("ATM Withdrawal", "atm", 10),
    ("ATM Withdrawal", "cash wdl", 10),
    ("Credit Card", "credit card", 10),
    ("Credit Card", "cc payment", 8),
    ("Taxes & Charges", "cgst", 10),
    ("Taxes & Charges", "sgst", 10),
    ("Taxes & Charges", "gst", 8),
    ("Taxes & Charges", "tds", 8),
    ("Investments", "groww", 10),
    ("Investments", "mutual fund", 10),
    ("Investments", "mf purchase", 10),
]


def get_connection(db_path: Path | str) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and foreign keys enabled."""
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables and seed default categories and rules. Idempotent."""
    conn.executescript(SCHEMA)

    cursor = conn.execute("SELECT count(*) FROM categories")
    if cursor.fetchone()[0] == 0:
        with atomic(conn):
            conn.executemany(
                "INSERT INTO categories (name, color, icon, category_group) VALUES (?, ?, ?, ?)",
                DEFAULT_CATEGORIES,
            )
            ids = {row["name"]: row["id"] for row in conn.execute("SELECT id, name FROM categories")}
            conn.executemany(
                "INSERT INTO category_rules (category_id, keyword, priority) VALUES (?, ?, ?)",
                [(ids[name], keyword, priority) for name, keyword, priority in DEFAULT_RULES],
            )


@contextmanager
def atomic(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block as one transaction: commit on success, roll back on any error."""
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


# --- Transactions ---


def insert_transactions(
    conn: sqlite3.Connection,
    rows: Iterable[tuple[ParsedTransaction, str, str]],
) -> int:
    """Insert (parsed row, category, merchant) triples. Caller owns the transaction."""
    params = [
        (t.date, t.narration, t.ref_no, t.value_date, t.withdrawal, t.deposit,
         t.closing_balance, category, merchant)
        for t, category, merchant in rows
    ]
    conn.executemany(
        "INSERT INTO transactions (date, narration, ref_no, value_date, withdrawal, deposit, "
        "closing_balance, category, merchant) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        params,
    )
    return len(params)


def fetch_existing_ref_nos(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute(
        "SELECT DISTINCT ref_no FROM transactions WHERE ref_no IS NOT NULL AND ref_no != ''"
    ).fetchall()
    return {row["ref_no"] for row in rows}


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        date=row["date"],
        narration=row["narration"],
        ref_no=row["ref_no"] or "",
        value_date=row["value_date"] or "",
        withdrawal=row["withdrawal"] or 0.0,
        deposit=row["deposit"] or 0.0,
        closing_balance=row["closing_balance"] or 0.0,
        category=row["category"] or "",
        merchant=row["merchant"] or "",
    )


def fetch_transactions(conn: sqlite3.Connection, limit: int | None = None) -> list[Transaction]:
    sql = "SELECT * FROM transactions ORDER BY date DESC, id DESC"
    params: tuple = ()
    if limit is not None:
        sql += " LIMIT ?"
        params = (limit,)
    return [_row_to_transaction(row) for row in conn.execute(sql, params).fetchall()]


def get_transaction(conn: sqlite3.Connection, txn_id: int) -> Transaction | None:
    row = conn.execute("SELECT * FROM transactions WHERE id = ?", (txn_id,)).fetchone()
    return _row_to_transaction(row) if row else None


def update_categorization(
    conn: sqlite3.Connection, updates: Iterable[tuple[str, str, int]],
) -> None:
    """Apply (category, merchant, transaction id) updates. Caller owns the transaction."""
    conn.executemany("UPDATE transactions SET category = ?, merchant = ? WHERE id = ?", list(updates))


def set_transaction_category(
    conn: sqlite3.Connection, txn_id: int, category: str | None = None, merchant: str | None = None,
) -> Transaction:
    """Overwrite a stored transaction's category and/or merchant; returns the updated row."""
    if category is None and merchant is None:
        raise ValueError("Nothing to update: give a category, a merchant, or both")
    if get_transaction(conn, txn_id) is None:
        raise ValueError(f"Unknown transaction: {txn_id}")
    with atomic(conn):
        if category is not None:
            conn.execute("UPDATE transactions SET category = ? WHERE id = ?", (category, txn_id))
        if merchant is not None:
            conn.execute("UPDATE transactions SET merchant = ? WHERE id = ?", (merchant, txn_id))
    return get_transaction(conn, txn_id)


# --- Categories ---


def list_categories(conn: sqlite3.Connection) -> list[Category]:
    rows = conn.execute(
        "SELECT id, name, color, icon, category_group FROM categories ORDER BY name"
    ).fetchall()
    return [
        Category(id=r["id"], name=r["name"], color=r["color"], icon=r["icon"], group=r["category_group"])
        for r in rows
    ]


def get_category_id(conn: sqlite3.Connection, name: str) -> int | None:
    row = conn.execute("SELECT id FROM categories WHERE name = ?", (name,)).fetchone()
    return row["id"] if row else None


def add_category(
    conn: sqlite3.Connection, name: str, color: str = "#6b7280",
    icon: str = "tag", group: str = "other",
) -> int:
    name = name.strip()
    if not name:
        raise ValueError("Category name must not be empty")
    if get_category_id(conn, name) is not None:
        raise ValueError(f"Category already exists: {name}")
    with atomic(conn):
        cursor = conn.execute(
            "INSERT INTO categories (name, color, icon, category_group) VALUES (?, ?, ?, ?)",
            (name, color, icon, group),
        )
    return cursor.lastrowid


def update_category(
    conn: sqlite3.Connection, name: str, new_name: str | None = None,
    color: str | None = None, icon: str | None = None, group: str | None = None,
) -> Category:
    """Edit a category in place. A rename also relabels the transactions filed under it."""
    category_id = get_category_id(conn, name)
    if category_id is None:
        raise ValueError(f"Unknown category: {name}")
    if new_name is not None:
        new_name = new_name.strip()
        if not new_name:
            raise ValueError("Category name must not be empty")
        if new_name != name and get_category_id(conn, new_name) is not None:
            raise ValueError(f"Category already exists: {new_name}")

    changes = {"name": new_name, "color": color, "icon": icon, "category_group": group}
    changes = {column: value for column, value in changes.items() if value is not None}
    with atomic(conn):
        if changes:
            assignments = ", ".join(f"{column} = ?" for column in changes)
            conn.execute(
                f"UPDATE categories SET {assignments} WHERE id = ?", (*changes.values(), category_id),
            )
        if new_name and new_name != name:
            conn.execute("UPDATE transactions SET category = ? WHERE category = ?", (new_name, name))

    row = conn.execute(
        "SELECT id, name, color, icon, category_group FROM categories WHERE id = ?", (category_id,)
    ).fetchone()
    return Category(id=row["id"], name=row["name"], color=row["color"], icon=row["icon"], group=row["category_group"])


def delete_category(conn: sqlite3.Connection, name: str) -> None:
    """Delete a category and its rules. Transactions keep the category name they were given."""
    category_id = get_category_id(conn, name)
    if category_id is None:
        raise ValueError(f"Unknown category: {name}")
    with atomic(conn):
        conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))


# --- Rules ---


def validate_rule(rule: CategoryRule) -> None:
    if not rule.keyword and not rule.condition_field:
        raise ValueError("A rule needs a keyword, a condition, or both")
    if rule.condition_field:
        if rule.condition_field not in CONDITION_FIELDS:
            raise ValueError(f"condition_field must be one of {', '.join(CONDITION_FIELDS)}")
        if rule.condition_op not in CONDITION_OPS:
            raise ValueError(f"condition_op must be one of {', '.join(CONDITION_OPS)}")
        if rule.condition_value is None:
            raise ValueError("condition_value is required with a condition")
        if rule.condition_op == "between" and rule.condition_value2 is None:
            raise ValueError("'between' needs condition_value2")


_RULE_SELECT = (
    "SELECT cr.*, c.name AS category_name FROM category_rules cr "
    "JOIN categories c ON cr.category_id = c.id"
)


def _row_to_rule(r: sqlite3.Row) -> CategoryRule:
    return CategoryRule(
        id=r["id"],
        category_id=r["category_id"],
        keyword=r["keyword"],
        priority=r["priority"],
        condition_field=r["condition_field"],
        condition_op=r["condition_op"],
        condition_value=r["condition_value"],
        condition_value2=r["condition_value2"],
        category_name=r["category_name"],
    )


def fetch_rules(conn: sqlite3.Connection) -> list[CategoryRule]:
    """All rules joined with their category name, ordered by priority then id."""
    rows = conn.execute(f"{_RULE_SELECT} ORDER BY cr.priority DESC, cr.id ASC").fetchall()
    return [_row_to_rule(r) for r in rows]


def get_rule(conn: sqlite3.Connection, rule_id: int) -> CategoryRule | None:
    row = conn.execute(f"{_RULE_SELECT} WHERE cr.id = ?", (rule_id,)).fetchone()
    return _row_to_rule(row) if row else None


def find_keyword_rule(conn: sqlite3.Connection, category_id: int, keyword: str) -> CategoryRule | None:
    """A rule filing ``keyword`` (case-insensitive) under the category, if any."""
    row = conn.execute(
        f"{_RULE_SELECT} WHERE cr.category_id = ? AND LOWER(cr.keyword) = ?",
        (category_id, keyword.lower()),
    ).fetchone()
    return _row_to_rule(row) if row else None


def add_rule(conn: sqlite3.Connection, rule: CategoryRule) -> int:
    validate_rule(rule)
    with atomic(conn):
        cursor = conn.execute(
            "INSERT INTO category_rules (category_id, keyword, priority, condition_field, "
            "condition_op, condition_value, condition_value2) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                rule.category_id, rule.keyword or None, rule.priority,
                rule.condition_field or None, rule.condition_op or None,
                rule.condition_value, rule.condition_value2,
            ),
        )
    return cursor.lastrowid


def update_rule(conn: sqlite3.Connection, rule: CategoryRule) -> None:
    """Overwrite every column of an existing rule with ``rule``'s values."""
    validate_rule(rule)
    with atomic(conn):
        cursor = conn.execute(
            "UPDATE category_rules SET category_id = ?, keyword = ?, priority = ?, "
            "condition_field = ?, condition_op = ?, condition_value = ?, condition_value2 = ? "
            "WHERE id = ?",
            (
                rule.category_id, rule.keyword or None, rule.priority,
                rule.condition_field or None, rule.condition_op or None,
                rule.condition_value, rule.condition_value2, rule.id,
            ),
        )
    if cursor.rowcount == 0:
        raise ValueError(f"Unknown rule: {rule.id}")


def delete_rule(conn: sqlite3.Connection, rule_id: int) -> None:
    with atomic(conn):
        cursor = conn.execute("DELETE FROM category_rules WHERE id = ?", (rule_id,))
    if cursor.rowcount == 0:
        raise ValueError(f"Unknown rule: {rule_id}")
