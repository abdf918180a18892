import sqlite3

from passbook.db import atomic, fetch_rules, list_categories, validate_rule
from passbook.models import CategoryRule


def export_rules(conn: sqlite3.Connection) -> dict:
    """Categories and rules as a JSON-ready dict. Rules refer to categories by name."""
    categories = [
        {"name": c.name, "color": c.color, "icon": c.icon, "group": c.group}
        for c in list_categories(conn)
    ]
    rules = [
        {
            "category_name": r.category_name,
            "keyword": r.keyword,
            "priority": r.priority,
            "condition_field": r.condition_field,
            "condition_op": r.condition_op,
            "condition_value": r.condition_value,
            "condition_value2": r.condition_value2,
        }
        for r in fetch_rules(conn)
    ]
    return {"categories": categories, "rules": rules}


def _rule_key(category_id: int, r: CategoryRule) -> tuple:
    return (
        category_id, r.keyword or "", r.condition_field or "",
        r.condition_op or "", r.condition_value or 0,
    )


def import_rules(conn: sqlite3.Connection, payload: dict) -> dict:
    """Merge an exported rule set. Missing categories are created; rules whose
    category is unknown, that are invalid, or that already exist are skipped."""
    rules = payload.get("rules") if isinstance(payload, dict) else None
    if not isinstance(rules, list):
        raise ValueError("Invalid format: expected { rules: [...] }")
    categories = payload.get("categories") or []

    imported = 0
    skipped = 0
    with atomic(conn):
        for cat in categories:
            name = (cat.get("name") or "").strip()
            if name:
                conn.execute(
                    "INSERT OR IGNORE INTO categories (name, color, icon, category_group) "
                    "VALUES (?, ?, ?, ?)",
                    (name, cat.get("color") or "#6b7280", cat.get("icon") or "tag",
                     cat.get("group") or "other"),
                )

        cat_ids = {r["name"]: r["id"] for r in conn.execute("SELECT id, name FROM categories")}
        existing = {_rule_key(r.category_id, r) for r in fetch_rules(conn)}

        for item in rules:
            category_id = cat_ids.get(item.get("category_name"))
            rule = CategoryRule(
                id=None,
                category_id=category_id,
                keyword=item.get("keyword") or None,
                priority=item.get("priority", 5),
                condition_field=item.get("condition_field") or None,
                condition_op=item.get("condition_op") or None,
                condition_value=item.get("condition_value"),
                condition_value2=item.get("condition_value2"),
            )
            if category_id is None:
                skipped += 1
                continue
            try:
                validate_rule(rule)
            except ValueError:
                skipped += 1
                continue
            key = _rule_key(category_id, rule)
            if key in existing:
                skipped += 1
                continue

            conn.execute(
                "INSERT INTO category_rules (category_id, keyword, priority, condition_field, "
                "condition_op, condition_value, condition_value2) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (category_id, rule.keyword, rule.priority, rule.condition_field,
                 rule.condition_op, rule.condition_value, rule.condition_value2),
            )
            existing.add(key)
            imported += 1

    return {"imported": imported, "skipped": skipped}
