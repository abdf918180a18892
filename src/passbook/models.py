from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class ParsedTransaction:
    """One statement row in canonical form, before categorization."""
    date: str  # ISO 8601
    narration: str
    ref_no: str = ""
    value_date: str = ""
    withdrawal: float = 0.0
    deposit: float = 0.0
    closing_balance: float = 0.0


@dataclass
class Transaction:
    id: int | None
    date: str
    narration: str
    ref_no: str = ""
    value_date: str = ""
    withdrawal: float = 0.0
    deposit: float = 0.0
    closing_balance: float = 0.0
    category: str = ""
    merchant: str = ""


@dataclass
class Category:
    id: int | None
    name: str
    color: str = "#6b7280"
    icon: str = "tag"
    group: str = "other"  # income, living_expenditure, loan, investment, other


@dataclass
class CategoryRule:
    id: int | None
    category_id: int | None
    keyword: str | None = None
    priority: int = 0
    condition_field: str | None = None  # withdrawal or deposit
    condition_op: str | None = None  # gt, lt, gte, lte, eq, between
    condition_value: float | None = None
    condition_value2: float | None = None
    category_name: str = ""


@dataclass
class ParseResult:
    transactions: list[ParsedTransaction] = field(default_factory=list)
    rows_skipped: int = 0


class BankParser(Protocol):
    key: str
    name: str
    formats: list[str]

    def score(self, content: str, filename: str) -> float: ...

    def parse(self, content: str) -> ParseResult: ...


@dataclass
class DetectionResult:
    parser: BankParser
    confidence: float
