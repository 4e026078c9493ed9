"""
utils.py
Dates and periods, category tags, formatting, validation, exports, sample data.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
import pandas as pd

import db
from models import DEFAULT_CATEGORY, PERIOD_PRESETS, LedgerEntry

CATEGORY_TAG_RE = re.compile(r"^\[(.*?)\]\s*(.*)", re.DOTALL)


def parse_iso(d: str) -> date:
    return date.fromisoformat(d[:10])


def parse_timestamp(ts: str) -> datetime:
    return datetime.fromisoformat(ts)


def last_day_of_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    day = min(start.day, last_day_of_month(y, m))
    return date(y, m, day)


def clamp_due_date(year: int, month: int, due_day: int) -> date:
    """
    Due date of a monthly charge: day 31 lands on the last day of short months,
    out-of-range values are pulled back into 1..last day.
    """
    day = max(1, min(int(due_day), last_day_of_month(year, month)))
    return date(year, month, day)


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=last_day_of_month(d.year, d.month))


def iter_months(start: date, end: date):
    """Yield the first day of every calendar month touched by [start, end]."""
    current = month_start(start)
    while current <= end:
        yield current
        current = add_months(current, 1)


def same_month(a: date, b: date) -> bool:
    return (a.year, a.month) == (b.year, b.month)


def period_range(preset: str, today: date | None = None) -> tuple[date, date]:
    """
    Resolve a date-range preset into (start, end), both inclusive.
    """
    if preset not in PERIOD_PRESETS:
        raise ValueError(f"Unknown period preset: {preset}")
    today = today or date.today()
    start = month_start(today)
    end = month_end(today)

    if preset == "last_month":
        prev = add_months(start, -1)
        start, end = prev, month_end(prev)
    elif preset == "last_3_months":
        start = add_months(start, -2)
    elif preset == "last_6_months":
        start = add_months(start, -5)
    elif preset == "year_to_date":
        start = date(today.year, 1, 1)
    return start, end


# ---------- Category tags ----------

def parse_category(raw: str) -> tuple[str, str]:
    """
    Split a legacy "[Tag] free text" string into (category, description).
    Untagged strings go to the default category with the whole text as description.
    """
    raw = (raw or "").strip()
    match = CATEGORY_TAG_RE.match(raw)
    if match:
        return match.group(1).strip() or DEFAULT_CATEGORY, match.group(2).strip()
    return DEFAULT_CATEGORY, raw


def format_category(category: str, description: str) -> str:
    if not description:
        return f"[{category}]"
    return f"[{category}] {description}"


# ---------- Formatting ----------

def format_currency(amount: float) -> str:
    """BRL formatting: 1234.5 -> 'R$ 1.234,50'."""
    text = f"{abs(float(amount)):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    sign = "-" if float(amount) < 0 else ""
    return f"{sign}R$ {text}"


def normalize_phone(phone: str) -> str:
    """
    Digits only; numbers with 11 digits or fewer are Brazilian local numbers and
    get the 55 country code.
    """
    digits = "".join(ch for ch in str(phone) if ch.isdigit())
    if digits and len(digits) <= 11:
        digits = "55" + digits
    return digits


# ---------- Validation ----------

def _validate_amount(amount, errors: list[str], label: str = "Amount") -> None:
    try:
        if float(amount) <= 0:
            errors.append(f"{label} must be > 0.")
    except (TypeError, ValueError):
        errors.append(f"{label} must be numeric.")


def _validate_due_day(due_day, errors: list[str]) -> None:
    try:
        if not 1 <= int(due_day) <= 31:
            errors.append("Due day must be between 1 and 31.")
    except (TypeError, ValueError):
        errors.append("Due day must be a whole number.")


def validate_student_inputs(full_name: str, phone: str, due_day) -> list[str]:
    errors: list[str] = []
    if not full_name.strip():
        errors.append("Full name is required.")
    digits = "".join(ch for ch in phone if ch.isdigit())
    if phone.strip() and len(digits) < 10:
        errors.append("Phone must include area code (e.g. 11999999999).")
    _validate_due_day(due_day, errors)
    return errors


def validate_plan_inputs(name: str, price, weekly_limit) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Plan name is required.")
    _validate_amount(price, errors, "Price")
    try:
        if int(weekly_limit) < 0:
            errors.append("Weekly limit cannot be negative.")
    except (TypeError, ValueError):
        errors.append("Weekly limit must be a whole number.")
    return errors


def validate_fixed_expense_inputs(category: str, description: str, amount, due_day) -> list[str]:
    errors: list[str] = []
    if not category.strip():
        errors.append("Category is required.")
    if not description.strip():
        errors.append("Description is required.")
    _validate_amount(amount, errors)
    _validate_due_day(due_day, errors)
    return errors


def validate_transaction_inputs(kind: str, category: str, amount, status: str) -> list[str]:
    errors: list[str] = []
    if kind not in ("income", "expense"):
        errors.append("Type must be income or expense.")
    if not category.strip():
        errors.append("Category is required.")
    if status not in ("paid", "pending", "overdue"):
        errors.append("Status must be paid, pending or overdue.")
    _validate_amount(amount, errors)
    return errors


# ---------- Exports ----------

def transactions_to_csv_bytes(entries: list[LedgerEntry]) -> bytes:
    df = pd.DataFrame(
        [
            {
                "id": e.id,
                "type": e.type,
                "category": e.category,
                "description": e.description,
                "amount": e.amount,
                "status": e.status,
                "due_date": e.due_date.isoformat() if e.due_date else "",
                "created_at": e.created_at.isoformat(timespec="seconds"),
                "projected": e.is_ghost,
            }
            for e in entries
        ],
        columns=["id", "type", "category", "description", "amount", "status", "due_date", "created_at", "projected"],
    )
    return df.to_csv(index=False).encode("utf-8")


def insert_sample_data() -> None:
    """
    Insert plans, students, fixed expenses and a few transactions
    (adds new rows each time it runs).
    """
    today = date.today()
    now = db.now_iso()

    monthly = db.execute(
        "INSERT INTO plans(name, price, weekly_limit, created_at) VALUES(?,?,?,?)",
        ("Mensal 3x", 150.0, 3, now),
    )
    unlimited = db.execute(
        "INSERT INTO plans(name, price, weekly_limit, created_at) VALUES(?,?,?,?)",
        ("Livre", 220.0, 0, now),
    )

    students = [
        ("Ana Souza", "11999990001", monthly, (today + timedelta(days=1)).day, "active", "Branca", 2),
        ("Bruno Lima", "11999990002", unlimited, 5, "active", "Azul", 1),
        ("Carla Dias", None, monthly, 20, "active", "Branca", 0),
        ("Diego Reis", "11999990004", monthly, 10, "inactive", "Roxa", 3),
    ]
    ids = []
    for name, phone, plan_id, due_day, status, belt, degrees in students:
        ids.append(
            db.execute(
                """
                INSERT INTO students(full_name, phone, plan_id, due_day, status, belt, degrees, created_at)
                VALUES(?,?,?,?,?,?,?,?)
                """,
                (name, phone, plan_id, due_day, status, belt, degrees, now),
            )
        )

    db.executemany(
        "INSERT INTO fixed_expenses(category, description, amount, due_day, active, created_at) VALUES(?,?,?,?,?,?)",
        [
            ("Aluguel", "Aluguel do galpão", 3500.0, 5, 1, now),
            ("Utilidades", "Conta de luz", 420.0, 15, 1, now),
            ("Utilidades", "Internet", 120.0, 31, 1, now),
        ],
    )

    db.executemany(
        """
        INSERT INTO transactions(type, category, description, amount, status, due_date, created_at, student_id)
        VALUES(?,?,?,?,?,?,?,?)
        """,
        [
            ("income", "Mensalidade", "Bruno Lima", 220.0, "paid", today.replace(day=5).isoformat(), now, ids[1]),
            ("expense", "Equipamentos", "Tatames novos", 900.0, "paid", today.isoformat(), now, None),
        ],
    )
