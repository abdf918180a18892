import importlib.metadata
import sqlite3

import typer

from passbook.db import atomic
from passbook.models import BankParser
from passbook.registry import ParserRegistry, registry


class PluginHooks:
    def __init__(self):
        self.parsers: list[BankParser] = []
        self.commands: list[tuple[typer.Typer, callable]] = []
        self.categories: list[dict] = []
        self.rules: list[dict] = []

    def add_parser(self, parser: BankParser) -> None:
        self.parsers.append(parser)

    def add_command(self, parent: typer.Typer, command: callable) -> None:
        self.commands.append((parent, command))

    def add_categories(self, categories: list[dict]) -> None:
        self.categories.extend(categories)

    def add_rules(self, rules: list[dict]) -> None:
        """Rules as dicts: category_name, keyword, priority and optional condition_* keys."""
        self.rules.extend(rules)


def load_plugins(app: typer.Typer, parsers: ParserRegistry = registry) -> PluginHooks:
    """Discover installed plugins and collect their hooks."""
    hooks = PluginHooks()

    eps = importlib.metadata.entry_points(group="passbook.plugins")
    for ep in eps:
        plugin_module = ep.load()
        if hasattr(plugin_module, "register"):
            plugin_module.register(hooks, app=app)

    install_parsers(hooks, parsers)

    for parent, command in hooks.commands:
        parent.command()(command)

    return hooks


def install_parsers(hooks: PluginHooks, parsers: ParserRegistry) -> None:
    for parser in hooks.parsers:
        if parsers.get_by_key(parser.key) is None:
            parsers.register(parser)


def seed_plugin_data(conn: sqlite3.Connection, hooks: PluginHooks) -> None:
    """Insert plugin categories and rules that are not in the database yet."""
    with atomic(conn):
        for cat in hooks.categories:
            conn.execute(
                "INSERT OR IGNORE INTO categories (name, color, icon, category_group) VALUES (?, ?, ?, ?)",
                (cat["name"], cat.get("color", "#6b7280"), cat.get("icon", "tag"), cat.get("group", "other")),
            )
        for rule in hooks.rules:
            cat = conn.execute(
                "SELECT id FROM categories WHERE name = ?", (rule["category_name"],)
            ).fetchone()
            if cat is None:
                continue
            exists = conn.execute(
                "SELECT 1 FROM category_rules WHERE category_id = ? AND COALESCE(keyword, '') = ?",
                (cat["id"], rule.get("keyword") or ""),
            ).fetchone()
            if exists is None:
                conn.execute(
                    "INSERT INTO category_rules (category_id, keyword, priority, condition_field, "
                    "condition_op, condition_value, condition_value2) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        cat["id"], rule.get("keyword"), rule.get("priority", 5),
                        rule.get("condition_field"), rule.get("condition_op"),
                        rule.get("condition_value"), rule.get("condition_value2"),
                    ),
                )
