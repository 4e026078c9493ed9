"""
models.py
Lightweight domain values (dataclasses) and shared constants.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime

TRANSACTION_TYPES = ("income", "expense")
TRANSACTION_STATUSES = ("paid", "pending", "overdue")
STUDENT_STATUSES = ("active", "debt", "inactive")
OPERATOR_ROLES = ("admin", "professor", "secretary")

DEFAULT_DUE_DAY = 10
DEFAULT_CATEGORY = "Geral"
TUITION_CATEGORY = "Mensalidade"
POS_CATEGORY = "PDV"
PAYROLL_CATEGORY = "Professores"

# Date-range presets offered on the financial screen
PERIOD_PRESETS = {
    "current_month": "Mês atual",
    "last_month": "Mês passado",
    "last_3_months": "Últimos 3 meses",
    "last_6_months": "Últimos 6 meses",
    "year_to_date": "Ano atual",
}

# Weekday codes stored in classes.days_of_week (Monday first, like date.weekday())
WEEKDAYS = ("seg", "ter", "qua", "qui", "sex", "sab", "dom")

BELTS = ("Branca", "Cinza", "Amarela", "Laranja", "Verde", "Azul", "Roxa", "Marrom", "Preta")


@dataclass(frozen=True)
class Plan:
    id: int | None
    name: str
    price: float
    weekly_limit: int = 0


@dataclass(frozen=True)
class Student:
    id: int | None
    full_name: str
    phone: str | None
    email: str | None
    plan_id: int | None
    due_day: int
    status: str  # active/debt/inactive
    belt: str | None = None
    degrees: int = 0
    created_at: datetime | None = None


@dataclass(frozen=True)
class Subscription:
    """An active student with a plan: one recurring charge per month."""
    student_id: int
    full_name: str
    phone: str | None
    due_day: int
    amount: float
    plan_name: str = ""
    since: date | None = None  # enrollment; no charge for earlier months


@dataclass(frozen=True)
class FixedExpense:
    id: int
    category: str
    description: str
    amount: float
    due_day: int
    active: bool = True
    since: date | None = None  # first month the expense applies to


@dataclass(frozen=True)
class LedgerEntry:
    id: int | str  # str for projected entries ("ghost-...")
    type: str  # income/expense
    category: str
    description: str
    amount: float
    status: str  # paid/pending/overdue
    due_date: date | None
    created_at: datetime
    student_id: int | None = None
    professor_id: int | None = None
    fixed_expense_id: int | None = None
    phone: str | None = None
    is_ghost: bool = False

    @property
    def label(self) -> str:
        """Category and description in the "[Tag] text" form."""
        if not self.description:
            return f"[{self.category}]"
        return f"[{self.category}] {self.description}"

    @property
    def reference_date(self) -> date:
        return self.due_date or self.created_at.date()


@dataclass(frozen=True)
class Professor:
    id: int
    full_name: str
    modality: str | None
    hourly_rate: float


@dataclass(frozen=True)
class PayrollLine:
    professor_id: int
    name: str
    sessions: int
    hourly_rate: float
    total: float
    paid: bool


@dataclass(frozen=True)
class AttendanceRecord:
    student_id: int
    class_id: int
    date: date
    present: bool


@dataclass(frozen=True)
class GraduationStatus:
    student: Student
    classes_attended: int
    since: date
    required: int
    eligible: bool
    next_milestone: str
    progress: float  # 0-100


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: float
    stock_quantity: int | None  # None means unlimited


@dataclass
class CartItem:
    product: Product
    quantity: int = 1


@dataclass
class BillingCandidate:
    entry: LedgerEntry
    kind: str  # preventive/overdue
    days_diff: int
    message: str
    selected: bool = True
    status: str = "pending"  # pending/sending/sent/error
    error: str | None = None


@dataclass(frozen=True)
class BatchResult:
    sent: int
    errors: int


@dataclass
class BotReport:
    processed: int = 0
    sent: int = 0
    errors: int = 0
    logs: list[str] = field(default_factory=list)
