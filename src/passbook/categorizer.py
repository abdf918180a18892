"""Rule-based categorization and merchant extraction.

``categorize`` is pure: it takes a transaction and an explicit rule list.
``recategorize_all``, ``apply_rule_to_existing`` and ``override_category``
read and write stored transactions.
"""

import logging
import re
import sqlite3
from dataclasses import dataclass

from passbook.db import (
    add_rule, atomic, fetch_rules, fetch_transactions, find_keyword_rule, get_category_id,
    set_transaction_category, update_categorization,
)
from passbook.models import CategoryRule, ParsedTransaction, Transaction

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Other"

_OPERATORS = {
    "gt": lambda value, bound: value > bound,
    "lt": lambda value, bound: value < bound,
    "gte": lambda value, bound: value >= bound,
    "lte": lambda value, bound: value <= bound,
    "eq": lambda value, bound: value == bound,
}

# Each pattern captures the counterparty token up to the next "-".
MERCHANT_PATTERNS = [
    re.compile(r"^UPI-([^-]+)", re.IGNORECASE),
    re.compile(r"^NEFT CR-[^-]+-([^-]+)", re.IGNORECASE),
    re.compile(r"^ACH D-\s*([^-]+)", re.IGNORECASE),
    re.compile(r"^IMPS-[^-]+-([^-]+)", re.IGNORECASE),
]

# Narration prefix -> display name, for salary credits that carry no counterparty token.
PAYROLL_SENDERS = {
    "LOWES SALARY": "Lowes (Employer)",
}

_CORPORATE_SUFFIXES = re.compile(
    r"\b(TECHNOLOGIES?|PRIVATE|LIMITED|PVT|LTD|SOLUTIONS?|P$)\b", re.IGNORECASE,
)
_WHITESPACE = re.compile(r"\s+")


@dataclass
class Categorization:
    category: str
    merchant: str


def clean_merchant_name(name: str) -> str:
    """Drop corporate suffixes (LTD, PVT, ...) and collapse whitespace."""
    return _WHITESPACE.sub(" ", _CORPORATE_SUFFIXES.sub("", name)).strip()


def extract_merchant(narration: str, payroll_senders: dict[str, str] | None = None) -> str:
    """Derive a display merchant from a bank narration, or "" if no pattern applies."""
    for pattern in MERCHANT_PATTERNS:
        m = pattern.match(narration)
        if m:
            return clean_merchant_name(m.group(1))

    senders = PAYROLL_SENDERS if payroll_senders is None else payroll_senders
    upper = narration.upper()
    for prefix, display in senders.items():
        if upper.startswith(prefix.upper()):
            return display
    return ""


def _amount_matches(rule: CategoryRule, tx: ParsedTransaction | Transaction) -> bool:
    if rule.condition_field == "withdrawal":
        value = tx.withdrawal or 0.0
    elif rule.condition_field == "deposit":
        value = tx.deposit or 0.0
    else:
        return False

    if rule.condition_value is None:
        return False
    if rule.condition_op == "between":
        if rule.condition_value2 is None:
            return False
        return rule.condition_value <= value <= rule.condition_value2
    op = _OPERATORS.get(rule.condition_op or "")
    return op is not None and op(value, rule.condition_value)


def matches(rule: CategoryRule, tx: ParsedTransaction | Transaction, merchant: str | None = None) -> bool:
    """True when every clause the rule defines holds for the transaction.

    Keywords are checked against the narration and the merchant; without an
    explicit ``merchant`` the transaction's stored one is used. A rule with
    neither a keyword nor a condition never matches.
    """
    if merchant is None:
        merchant = getattr(tx, "merchant", "")
    if not rule.keyword and not rule.condition_field:
        return False

    if rule.keyword:
        keyword = rule.keyword.casefold()
        if keyword not in tx.narration.casefold() and keyword not in merchant.casefold():
            return False

    if rule.condition_field and not _amount_matches(rule, tx):
        return False

    return True


def _outranks(rule: CategoryRule, best: CategoryRule) -> bool:
    if rule.priority != best.priority:
        return rule.priority > best.priority
    # Equal priority: lowest id wins. Unsaved rules (no id) keep list order.
    if rule.id is None or best.id is None:
        return False
    return rule.id < best.id


def categorize(
    tx: ParsedTransaction | Transaction,
    rules: list[CategoryRule],
    default: str = DEFAULT_CATEGORY,
    payroll_senders: dict[str, str] | None = None,
) -> Categorization:
    # A stored merchant (set by hand or by a generic import) survives when the
    # narration yields none.
    merchant = extract_merchant(tx.narration, payroll_senders) or getattr(tx, "merchant", "")

    best: CategoryRule | None = None
    for rule in rules:
        if matches(rule, tx, merchant) and (best is None or _outranks(rule, best)):
            best = rule

    category = best.category_name if best is not None and best.category_name else default
    return Categorization(category=category, merchant=merchant)


def recategorize_all(
    conn: sqlite3.Connection,
    default: str = DEFAULT_CATEGORY,
    payroll_senders: dict[str, str] | None = None,
) -> int:
    """Re-run the current rules over every stored transaction in one atomic batch.

    Returns the number of transactions processed.
    """
    rules = fetch_rules(conn)
    transactions = fetch_transactions(conn)
    updates = []
    for txn in transactions:
        result = categorize(txn, rules, default=default, payroll_senders=payroll_senders)
        updates.append((result.category, result.merchant, txn.id))

    with atomic(conn):
        update_categorization(conn, updates)

    logger.info("Recategorized %d transactions with %d rules", len(updates), len(rules))
    return len(updates)


_FIRST_TOKEN = re.compile(r"[\s\-/]+")


def extract_keyword(narration: str) -> str:
    """Pick a rule keyword for a narration: the counterparty token when a
    merchant pattern applies, else the first word if it has 3+ characters."""
    for pattern in MERCHANT_PATTERNS:
        m = pattern.match(narration)
        if m:
            return m.group(1).strip()
    first = _FIRST_TOKEN.split(narration.strip(), maxsplit=1)[0]
    return first if len(first) >= 3 else ""


def apply_rule_to_existing(conn: sqlite3.Connection, rule: CategoryRule) -> int:
    """File every stored transaction the rule matches under its category.

    Unlike ``recategorize_all`` this ignores other rules' priorities. Returns
    the number of transactions changed.
    """
    if not rule.category_name:
        raise ValueError("Rule has no category name")
    updates = [
        (rule.category_name, txn.merchant, txn.id)
        for txn in fetch_transactions(conn)
        if matches(rule, txn) and txn.category != rule.category_name
    ]
    with atomic(conn):
        update_categorization(conn, updates)
    logger.info("Applied rule %s to %d existing transactions", rule.id, len(updates))
    return len(updates)


def override_category(
    conn: sqlite3.Connection, txn_id: int, category: str, merchant: str | None = None,
    priority: int = 5,
) -> CategoryRule | None:
    """Set one transaction's category by hand and learn a keyword rule from it.

    The keyword is the transaction's merchant, or one taken from its narration.
    Returns the rule created, or None when there was no usable keyword or an
    equivalent rule already exists.
    """
    category_id = get_category_id(conn, category)
    if category_id is None:
        raise ValueError(f"Unknown category: {category}")

    txn = set_transaction_category(conn, txn_id, category=category, merchant=merchant)
    keyword = txn.merchant or extract_keyword(txn.narration)
    if not keyword:
        logger.debug("Transaction %d: no keyword to learn from %r", txn_id, txn.narration)
        return None
    if find_keyword_rule(conn, category_id, keyword) is not None:
        return None

    rule = CategoryRule(
        id=None, category_id=category_id, keyword=keyword, priority=priority, category_name=category,
    )
    rule.id = add_rule(conn, rule)
    logger.info("Learned rule %r -> %s from transaction %d", keyword, category, txn_id)
    return rule
