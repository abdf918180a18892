import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from passbook.db import get_connection, init_db
from passbook.errors import PassbookError
from passbook.importer import import_file
from passbook.plugins import load_plugins, seed_plugin_data
from passbook.registry import CONFIDENCE_THRESHOLD, registry
from passbook.settings import DEFAULTS, get_db_path, load_settings, save_settings

app = typer.Typer(help="Passbook: bank statement import and categorization.", invoke_without_command=True)
console = Console()

_plugin_hooks = load_plugins(app)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """Passbook: bank statement import and categorization."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


@app.command()
def init(
    data_dir: str = typer.Option(None, "--data-dir", help="Path for passbook data (default: ~/Documents/passbook)"),
):
    """Choose a data directory and initialize the database."""
    settings = load_settings()

    if data_dir:
        settings["data_dir"] = str(Path(data_dir).expanduser().resolve())
    elif settings == DEFAULTS:
        chosen = typer.prompt("Data directory", default=settings["data_dir"])
        settings["data_dir"] = str(Path(chosen).expanduser().resolve())

    save_settings(settings)

    resolved = Path(settings["data_dir"])
    resolved.mkdir(parents=True, exist_ok=True)

    conn = get_connection(resolved / "passbook.db")
    init_db(conn)
    seed_plugin_data(conn, _plugin_hooks)
    conn.close()

    typer.echo(f"Initialized passbook at {resolved}")


# --- Import ---


@app.command("import")
def import_cmd(
    file: Path = typer.Argument(help="Statement file (.txt or .csv) to import"),
    generic: bool = typer.Option(False, "--generic", help="Skip bank detection; map columns by header name"),
):
    """Import a bank statement and categorize its transactions."""
    from passbook.generic import import_generic

    settings = load_settings()
    conn = get_connection(get_db_path())
    try:
        if generic:
            result = import_generic(
                conn, file.read_bytes(),
                default_category=settings["default_category"],
                payroll_senders=settings["payroll_senders"],
            )
        else:
            result = import_file(
                conn, file,
                default_category=settings["default_category"],
                payroll_senders=settings["payroll_senders"],
            )
    except (PassbookError, ValueError) as exc:
        _fail(str(exc))
    finally:
        conn.close()

    bank = result.get("bank", "generic CSV")
    typer.echo(f"{bank}: {result['imported']} imported, {result['skipped']} skipped of {result['total']}")


@app.command()
def detect(file: Path = typer.Argument(help="Statement file to inspect")):
    """Show every parser's confidence for a file."""
    from passbook.normalize import decode_content

    content = decode_content(file.read_bytes())
    table = Table(title=f"Detection: {file.name}")
    table.add_column("Parser")
    table.add_column("Bank")
    table.add_column("Confidence", justify="right")
    for parser, confidence in sorted(registry.scores(content, file.name), key=lambda s: -s[1]):
        style = "green" if confidence >= CONFIDENCE_THRESHOLD else "dim"
        table.add_row(parser.key, parser.name, f"[{style}]{confidence:.2f}[/{style}]")
    console.print(table)

    best = registry.detect(content, file.name)
    if best is None:
        typer.echo("No bank format detected; try --generic.")
    else:
        typer.echo(f"Selected: {best.parser.name} ({best.parser.key})")


@app.command()
def banks():
    """List supported bank formats in detection order."""
    table = Table(title="Bank formats")
    table.add_column("Key", style="dim")
    table.add_column("Bank")
    table.add_column("Formats")
    for parser in registry.list_all():
        table.add_row(parser.key, parser.name, ", ".join(parser.formats))
    console.print(table)


# --- Categorize ---


@app.command()
def recategorize():
    """Re-apply all rules to every stored transaction."""
    from passbook.categorizer import recategorize_all

    settings = load_settings()
    conn = get_connection(get_db_path())
    count = recategorize_all(
        conn, default=settings["default_category"], payroll_senders=settings["payroll_senders"],
    )
    conn.close()
    typer.echo(f"{count} transactions recategorized")


@app.command()
def transactions(limit: int = typer.Option(20, help="Number of most recent transactions")):
    """Show recent transactions."""
    from passbook.db import fetch_transactions

    conn = get_connection(get_db_path())
    rows = fetch_transactions(conn, limit=limit)
    conn.close()

    table = Table(title="Transactions")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Narration")
    table.add_column("Merchant")
    table.add_column("Category")
    table.add_column("Withdrawal", justify="right", style="red")
    table.add_column("Deposit", justify="right", style="green")
    for t in rows:
        table.add_row(
            str(t.id), t.date, t.narration, t.merchant, t.category,
            f"{t.withdrawal:,.2f}" if t.withdrawal else "",
            f"{t.deposit:,.2f}" if t.deposit else "",
        )
    console.print(table)


@app.command("set-category")
def set_category(
    txn_id: int = typer.Argument(help="Transaction ID (see 'transactions')"),
    category: str = typer.Argument(help="Category name"),
    merchant: str = typer.Option(None, help="Also set the merchant"),
):
    """Change one transaction's category and learn a keyword rule from it."""
    from passbook.categorizer import override_category

    conn = get_connection(get_db_path())
    try:
        rule = override_category(conn, txn_id, category, merchant=merchant)
    except ValueError as exc:
        _fail(str(exc))
    finally:
        conn.close()
    typer.echo(f"Transaction {txn_id} → {category}")
    if rule is not None:
        typer.echo(f"Added rule: '{rule.keyword}' → {category}")


# --- Categories ---

categories_app = typer.Typer(help="Manage categories.")
app.add_typer(categories_app, name="categories")


@categories_app.command("list")
def categories_list():
    """List all categories."""
    from passbook.db import list_categories

    conn = get_connection(get_db_path())
    rows = list_categories(conn)
    conn.close()

    table = Table(title="Categories")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Group")
    table.add_column("Color")
    table.add_column("Icon")
    for c in rows:
        table.add_row(str(c.id), c.name, c.group, f"[{c.color}]{c.color}[/{c.color}]", c.icon)
    console.print(table)


@categories_app.command("add")
def categories_add(
    name: str = typer.Argument(help="Category name"),
    color: str = typer.Option("#6b7280", help="Hex color"),
    icon: str = typer.Option("tag", help="Icon name"),
    group: str = typer.Option("other", help="income, living_expenditure, loan, investment or other"),
):
    """Add a category."""
    from passbook.db import add_category

    conn = get_connection(get_db_path())
    try:
        add_category(conn, name, color=color, icon=icon, group=group)
    except ValueError as exc:
        _fail(str(exc))
    finally:
        conn.close()
    typer.echo(f"Added category: {name}")


@categories_app.command("edit")
def categories_edit(
    name: str = typer.Argument(help="Category name"),
    new_name: str = typer.Option(None, "--name", help="Rename the category"),
    color: str = typer.Option(None, help="Hex color"),
    icon: str = typer.Option(None, help="Icon name"),
    group: str = typer.Option(None, help="income, living_expenditure, loan, investment or other"),
):
    """Edit a category. Renaming also relabels its transactions."""
    from passbook.db import update_category

    conn = get_connection(get_db_path())
    try:
        category = update_category(conn, name, new_name=new_name, color=color, icon=icon, group=group)
    except ValueError as exc:
        _fail(str(exc))
    finally:
        conn.close()
    typer.echo(f"Updated category: {category.name}")


@categories_app.command("delete")
def categories_delete(name: str = typer.Argument(help="Category name")):
    """Delete a category and its rules."""
    from passbook.db import delete_category

    conn = get_connection(get_db_path())
    try:
        delete_category(conn, name)
    except ValueError as exc:
        _fail(str(exc))
    finally:
        conn.close()
    typer.echo(f"Deleted category: {name}")


# --- Rules ---

rules_app = typer.Typer(help="Manage categorization rules.")
app.add_typer(rules_app, name="rules")


@rules_app.command("add")
def rules_add(
    category: str = typer.Option(help="Category name to assign"),
    keyword: str = typer.Option(None, help="Case-insensitive substring of narration or merchant"),
    priority: int = typer.Option(5, help="Rule priority (higher wins)"),
    field: str = typer.Option(None, "--field", help="Amount condition field: withdrawal or deposit"),
    op: str = typer.Option(None, "--op", help="gt, lt, gte, lte, eq or between"),
    value: float = typer.Option(None, "--value", help="Condition value (lower bound for between)"),
    value2: float = typer.Option(None, "--value2", help="Upper bound for between"),
    apply_existing: bool = typer.Option(
        False, "--apply-existing", help="Also file matching stored transactions under this category",
    ),
):
    """Add a categorization rule."""
    from passbook.categorizer import apply_rule_to_existing
    from passbook.db import add_rule, get_category_id
    from passbook.models import CategoryRule

    conn = get_connection(get_db_path())
    applied = 0
    try:
        category_id = get_category_id(conn, category)
        if category_id is None:
            _fail(f"Unknown category: {category}")
        rule = CategoryRule(
            id=None, category_id=category_id, keyword=keyword, priority=priority,
            condition_field=field, condition_op=op,
            condition_value=value, condition_value2=value2, category_name=category,
        )
        rule.id = add_rule(conn, rule)
        if apply_existing:
            applied = apply_rule_to_existing(conn, rule)
    except ValueError as exc:
        _fail(str(exc))
    finally:
        conn.close()
    label = f"'{keyword}'" if keyword else f"{field} {op}"
    typer.echo(f"Added rule: {label} → {category}")
    if apply_existing:
        typer.echo(f"{applied} existing transactions moved to {category}")


@rules_app.command("edit")
def rules_edit(
    rule_id: int = typer.Argument(help="Rule ID"),
    category: str = typer.Option(None, help="New category name"),
    keyword: str = typer.Option(None, help="New keyword; pass '' to drop it"),
    priority: int = typer.Option(None, help="New priority"),
    field: str = typer.Option(None, "--field", help="Amount condition field: withdrawal or deposit"),
    op: str = typer.Option(None, "--op", help="gt, lt, gte, lte, eq or between"),
    value: float = typer.Option(None, "--value", help="Condition value (lower bound for between)"),
    value2: float = typer.Option(None, "--value2", help="Upper bound for between"),
    no_condition: bool = typer.Option(False, "--no-condition", help="Drop the amount condition"),
):
    """Edit a rule. Options not given keep their current value."""
    from dataclasses import replace

    from passbook.db import get_category_id, get_rule, update_rule

    conn = get_connection(get_db_path())
    try:
        rule = get_rule(conn, rule_id)
        if rule is None:
            _fail(f"Unknown rule: {rule_id}")
        if category is not None:
            category_id = get_category_id(conn, category)
            if category_id is None:
                _fail(f"Unknown category: {category}")
            rule = replace(rule, category_id=category_id, category_name=category)
        if keyword is not None:
            rule = replace(rule, keyword=keyword or None)
        if priority is not None:
            rule = replace(rule, priority=priority)
        if no_condition:
            rule = replace(
                rule, condition_field=None, condition_op=None, condition_value=None, condition_value2=None,
            )
        changes = {
            "condition_field": field, "condition_op": op,
            "condition_value": value, "condition_value2": value2,
        }
        rule = replace(rule, **{k: v for k, v in changes.items() if v is not None})
        update_rule(conn, rule)
    except ValueError as exc:
        _fail(str(exc))
    finally:
        conn.close()
    typer.echo(f"Updated rule {rule_id}")


def _describe_condition(rule) -> str:
    if not rule.condition_field:
        return ""
    if rule.condition_op == "between":
        return f"{rule.condition_field} between {rule.condition_value:g} and {rule.condition_value2:g}"
    value = "" if rule.condition_value is None else f"{rule.condition_value:g}"
    return f"{rule.condition_field} {rule.condition_op} {value}"


@rules_app.command("list")
def rules_list():
    """List all categorization rules."""
    from passbook.db import fetch_rules

    conn = get_connection(get_db_path())
    rows = fetch_rules(conn)
    conn.close()

    table = Table(title="Rules")
    table.add_column("ID", style="dim")
    table.add_column("Keyword")
    table.add_column("Condition")
    table.add_column("Category")
    table.add_column("Priority", justify="right")
    for r in rows:
        table.add_row(str(r.id), r.keyword or "", _describe_condition(r), r.category_name, str(r.priority))
    console.print(table)


@rules_app.command("delete")
def rules_delete(rule_id: int = typer.Argument(help="Rule ID")):
    """Delete a rule."""
    from passbook.db import delete_rule

    conn = get_connection(get_db_path())
    try:
        delete_rule(conn, rule_id)
    except ValueError as exc:
        _fail(str(exc))
    finally:
        conn.close()
    typer.echo(f"Deleted rule {rule_id}")


@rules_app.command("export")
def rules_export(output: Path = typer.Argument(help="JSON file to write")):
    """Export categories and rules to JSON."""
    from passbook.rules_io import export_rules

    conn = get_connection(get_db_path())
    payload = export_rules(conn)
    conn.close()
    output.write_text(json.dumps(payload, indent=2) + "\n")
    typer.echo(f"Exported {len(payload['rules'])} rules to {output}")


@rules_app.command("import")
def rules_import(source: Path = typer.Argument(help="JSON file produced by 'rules export'")):
    """Import categories and rules from JSON."""
    from passbook.rules_io import import_rules

    conn = get_connection(get_db_path())
    try:
        result = import_rules(conn, json.loads(source.read_text()))
    except ValueError as exc:
        _fail(f"Invalid rules file: {exc}")
    finally:
        conn.close()
    typer.echo(f"{result['imported']} rules imported, {result['skipped']} skipped")


if __name__ == "__main__":
    app()
