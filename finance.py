"""
finance.py
Ledger data access, fixed expenses, settling projected entries, payroll and
the date-bucketed aggregations behind the financial screen.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

import pandas as pd

import classes
import db
import reconcile
import students
import utils
from models import (
    PAYROLL_CATEGORY,
    FixedExpense,
    LedgerEntry,
    PayrollLine,
    Professor,
    Subscription,
)

logger = logging.getLogger(__name__)

MRR_PROJECTION_DAY = 5
MRR_PROJECTION_MONTHS = 3


# ---------- Row mapping ----------

def entry_from_row(r) -> LedgerEntry:
    category, description = r["category"], r["description"]
    # Rows imported from the old single-field format still carry "[Tag] text"
    if not description and category.startswith("["):
        category, description = utils.parse_category(category)
    return LedgerEntry(
        id=r["id"],
        type=r["type"],
        category=category,
        description=description or "",
        amount=float(r["amount"]),
        status=r["status"],
        due_date=utils.parse_iso(r["due_date"]) if r["due_date"] else None,
        created_at=utils.parse_timestamp(r["created_at"]),
        student_id=r["student_id"],
        professor_id=r["professor_id"],
        fixed_expense_id=r["fixed_expense_id"],
    )


def fixed_expense_from_row(r) -> FixedExpense:
    return FixedExpense(
        id=r["id"],
        category=r["category"],
        description=r["description"],
        amount=float(r["amount"]),
        due_day=int(r["due_day"]),
        active=bool(r["active"]),
        since=utils.parse_timestamp(r["created_at"]).date(),
    )


# ---------- Transactions ----------

def fetch_transactions(start: date, end: date) -> list[LedgerEntry]:
    """Entries created within [start, end], newest first."""
    rows = db.fetch_all(
        """
        SELECT * FROM transactions
        WHERE created_at >= ? AND created_at < ?
        ORDER BY created_at DESC, id DESC
        """,
        (start.isoformat(), (end + timedelta(days=1)).isoformat()),
    )
    return [entry_from_row(r) for r in rows]


def fetch_entries_touching(start: date, end: date) -> list[LedgerEntry]:
    """Entries created or due within [start, end]; what reconciliation matches against."""
    upper = (end + timedelta(days=1)).isoformat()
    rows = db.fetch_all(
        """
        SELECT * FROM transactions
        WHERE (created_at >= ? AND created_at < ?)
           OR (due_date >= ? AND due_date < ?)
        ORDER BY created_at DESC, id DESC
        """,
        (start.isoformat(), upper, start.isoformat(), upper),
    )
    return [entry_from_row(r) for r in rows]


def projected_entries(start: date, end: date) -> list[LedgerEntry]:
    """Fixed expenses and tuition of the period not yet matched by a real entry."""
    return reconcile.reconcile(
        fetch_active_fixed_expenses(),
        students.fetch_subscriptions(),
        fetch_entries_touching(start, end),
        start,
        end,
    )


def fetch_pending_expenses() -> list[LedgerEntry]:
    """Every pending expense regardless of period, nearest due date first."""
    rows = db.fetch_all(
        """
        SELECT * FROM transactions
        WHERE type = 'expense' AND status = 'pending'
        ORDER BY COALESCE(due_date, created_at) ASC, id ASC
        """
    )
    return [entry_from_row(r) for r in rows]


def fetch_student_transactions(student_id: int) -> list[LedgerEntry]:
    """Financial history of one student, latest due first."""
    rows = db.fetch_all(
        """
        SELECT * FROM transactions
        WHERE student_id = ?
        ORDER BY COALESCE(due_date, created_at) DESC, id DESC
        """,
        (student_id,),
    )
    return [entry_from_row(r) for r in rows]


def recent_transactions(limit: int = 5) -> list[LedgerEntry]:
    rows = db.fetch_all("SELECT * FROM transactions ORDER BY created_at DESC, id DESC LIMIT ?", (limit,))
    return [entry_from_row(r) for r in rows]


def get_transaction(entry_id: int) -> LedgerEntry | None:
    r = db.fetch_one("SELECT * FROM transactions WHERE id = ?", (entry_id,))
    return entry_from_row(r) if r else None


def add_transaction(
    kind: str,
    category: str,
    description: str,
    amount: float,
    status: str = "pending",
    due_date: date | None = None,
    created_at: datetime | None = None,
    student_id: int | None = None,
    professor_id: int | None = None,
    fixed_expense_id: int | None = None,
    conn=None,
) -> int:
    """Insert one entry. Pass conn to take part in a caller's transaction."""
    created_at = created_at or datetime.now()
    sql = """
        INSERT INTO transactions(type, category, description, amount, status, due_date, created_at,
            student_id, professor_id, fixed_expense_id)
        VALUES(?,?,?,?,?,?,?,?,?,?)
        """
    params = (
        kind,
        category.strip(),
        description.strip(),
        float(amount),
        status,
        due_date.isoformat() if due_date else None,
        created_at.isoformat(timespec="seconds"),
        student_id,
        professor_id,
        fixed_expense_id,
    )
    if conn is not None:
        return conn.execute(sql, params).lastrowid
    return db.execute(sql, params)


def add_tagged_transaction(kind: str, raw_category: str, amount: float, **kwargs) -> int:
    """Store an entry given in the legacy "[Tag] text" form."""
    category, description = utils.parse_category(raw_category)
    return add_transaction(kind, category, description, amount, **kwargs)


def update_transaction(
    entry_id: int,
    kind: str,
    category: str,
    description: str,
    amount: float,
    status: str,
    due_date: date | None,
) -> None:
    db.execute(
        """
        UPDATE transactions SET type=?, category=?, description=?, amount=?, status=?, due_date=?
        WHERE id=?
        """,
        (
            kind,
            category.strip(),
            description.strip(),
            float(amount),
            status,
            due_date.isoformat() if due_date else None,
            entry_id,
        ),
    )


def delete_transaction(entry_id: int) -> None:
    db.execute("DELETE FROM transactions WHERE id = ?", (entry_id,))


def toggle_status(entry_id: int) -> str:
    """Flip a real entry between paid and pending. Returns the new status."""
    entry = get_transaction(entry_id)
    if entry is None:
        raise LookupError(f"Transaction {entry_id} not found")
    new_status = "pending" if entry.status == "paid" else "paid"
    db.execute("UPDATE transactions SET status = ? WHERE id = ?", (new_status, entry_id))
    return new_status


def settle_projected(ghost: LedgerEntry, paid_at: datetime | None = None) -> int:
    """
    Turn a projected entry into a real paid one, linked to its fixed expense or
    student and keeping the projected due date, so the next reconciliation of
    that month finds it.
    """
    if not ghost.is_ghost or not reconcile.is_ghost_id(ghost.id):
        raise ValueError(f"{ghost.id!r} is not a projected entry")
    new_id = add_transaction(
        ghost.type,
        ghost.category,
        ghost.description,
        ghost.amount,
        status="paid",
        due_date=ghost.due_date,
        created_at=paid_at or datetime.now(),
        student_id=ghost.student_id,
        fixed_expense_id=ghost.fixed_expense_id,
    )
    logger.info("Settled projected entry %s as transaction %s", ghost.id, new_id)
    return new_id


# ---------- Fixed expenses ----------

def fetch_fixed_expenses(active_only: bool = False) -> list[FixedExpense]:
    sql = "SELECT * FROM fixed_expenses"
    if active_only:
        sql += " WHERE active = 1"
    sql += " ORDER BY due_day ASC, id ASC"
    return [fixed_expense_from_row(r) for r in db.fetch_all(sql)]


def fetch_active_fixed_expenses() -> list[FixedExpense]:
    return fetch_fixed_expenses(active_only=True)


def save_fixed_expense(
    category: str,
    description: str,
    amount: float,
    due_day: int,
    active: bool = True,
    fixed_expense_id: int | None = None,
    created_at: datetime | None = None,
) -> int:
    values = (category.strip(), description.strip(), float(amount), int(due_day), int(active))
    if fixed_expense_id:
        db.execute(
            "UPDATE fixed_expenses SET category=?, description=?, amount=?, due_day=?, active=? WHERE id=?",
            values + (fixed_expense_id,),
        )
        return fixed_expense_id
    return db.execute(
        "INSERT INTO fixed_expenses(category, description, amount, due_day, active, created_at) VALUES(?,?,?,?,?,?)",
        values + ((created_at or datetime.now()).isoformat(timespec="seconds"),),
    )


def set_fixed_expense_active(fixed_expense_id: int, active: bool) -> None:
    db.execute("UPDATE fixed_expenses SET active = ? WHERE id = ?", (int(active), fixed_expense_id))


# ---------- Categories ----------

def fetch_categories(kind: str | None = None) -> list:
    if kind:
        return db.fetch_all("SELECT * FROM categories WHERE type = ? ORDER BY name", (kind,))
    return db.fetch_all("SELECT * FROM categories ORDER BY type, name")


def add_category(name: str, kind: str) -> int:
    return db.execute(
        "INSERT INTO categories(name, type) VALUES(?, ?) ON CONFLICT(name, type) DO NOTHING",
        (name.strip(), kind),
    )


def delete_category(category_id: int) -> None:
    db.execute("DELETE FROM categories WHERE id = ?", (category_id,))


# ---------- Professors & payroll ----------

def fetch_professors() -> list[Professor]:
    rows = db.fetch_all("SELECT * FROM professors ORDER BY full_name ASC")
    return [
        Professor(id=r["id"], full_name=r["full_name"], modality=r["modality"], hourly_rate=float(r["hourly_rate"] or 0))
        for r in rows
    ]


def save_professor(full_name: str, modality: str | None, hourly_rate: float, professor_id: int | None = None) -> int:
    if professor_id:
        db.execute(
            "UPDATE professors SET full_name=?, modality=?, hourly_rate=? WHERE id=?",
            (full_name.strip(), modality, float(hourly_rate), professor_id),
        )
        return professor_id
    return db.execute(
        "INSERT INTO professors(full_name, modality, hourly_rate, created_at) VALUES(?,?,?,?)",
        (full_name.strip(), modality, float(hourly_rate), db.now_iso()),
    )


def delete_professor(professor_id: int) -> None:
    db.execute("DELETE FROM professors WHERE id = ?", (professor_id,))


def compute_payroll(professors: list[Professor], session_professor_ids: list, paid_ids: set) -> list[PayrollLine]:
    """Classes actually given in the period times the hourly rate."""
    lines = []
    for p in professors:
        count = sum(1 for pid in session_professor_ids if pid == p.id)
        lines.append(
            PayrollLine(
                professor_id=p.id,
                name=p.full_name,
                sessions=count,
                hourly_rate=p.hourly_rate,
                total=round(count * p.hourly_rate, 2),
                paid=p.id in paid_ids,
            )
        )
    return lines


def payroll_for_period(start: date, end: date) -> list[PayrollLine]:
    sessions = classes.fetch_sessions(start, end)
    paid = {
        e.professor_id
        for e in fetch_transactions(start, end)
        if e.type == "expense" and e.professor_id is not None
    }
    return compute_payroll(fetch_professors(), [s["professor_id"] for s in sessions], paid)


def pay_professor(line: PayrollLine, paid_at: datetime | None = None) -> int:
    if line.total <= 0:
        raise ValueError(f"Nothing to pay for {line.name}")
    paid_at = paid_at or datetime.now()
    return add_transaction(
        "expense",
        PAYROLL_CATEGORY,
        f"Pagamento Professor - {line.name}",
        line.total,
        status="paid",
        due_date=paid_at.date(),
        created_at=paid_at,
        professor_id=line.professor_id,
    )


# ---------- Aggregations ----------

def summary(entries: list[LedgerEntry]) -> dict[str, float]:
    paid = [e for e in entries if e.status == "paid" and not e.is_ghost]
    income = sum(e.amount for e in paid if e.type == "income")
    expense = sum(e.amount for e in paid if e.type == "expense")
    return {"income": round(income, 2), "expense": round(expense, 2), "profit": round(income - expense, 2)}


def recurring_revenue(subscriptions: list[Subscription]) -> float:
    return round(sum(s.amount for s in subscriptions), 2)


def payable_within(pending: list[LedgerEntry], today: date | None = None, days: int = 7) -> float:
    """Pending expenses (overdue included) due before today + days."""
    limit = (today or date.today()) + timedelta(days=days)
    return round(
        sum(e.amount for e in pending if e.type == "expense" and e.status == "pending" and e.reference_date < limit),
        2,
    )


def _merge(entries: list[LedgerEntry], pending: list[LedgerEntry]) -> list[LedgerEntry]:
    seen = {e.id for e in entries}
    return [*entries, *(p for p in pending if p.id not in seen)]


def cash_flow(
    entries: list[LedgerEntry],
    pending: list[LedgerEntry],
    mrr: float = 0.0,
    today: date | None = None,
) -> pd.DataFrame:
    """
    Realized and pending income/expense per day, plus the MRR projected on the
    5th of each of the next three months.
    """
    columns = ["date", "income", "income_pending", "expense", "expense_pending"]
    records = []
    for e in _merge(entries, pending):
        bucket = ("income" if e.type == "income" else "expense") + ("" if e.status == "paid" else "_pending")
        records.append({"date": e.reference_date, bucket: e.amount})

    if mrr > 0:
        base = today or date.today()
        for i in range(1, MRR_PROJECTION_MONTHS + 1):
            future = utils.add_months(base, i).replace(day=MRR_PROJECTION_DAY)
            records.append({"date": future, "income_pending": mrr})

    if not records:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame.from_records(records).reindex(columns=columns).fillna(0.0)
    return df.groupby("date", as_index=False).sum().sort_values("date").reset_index(drop=True)


def expense_breakdown(entries: list[LedgerEntry], pending: list[LedgerEntry]) -> pd.DataFrame:
    rows = [{"category": e.category, "value": e.amount} for e in _merge(entries, pending) if e.type == "expense"]
    if not rows:
        return pd.DataFrame(columns=["category", "value"])
    df = pd.DataFrame(rows).groupby("category", as_index=False)["value"].sum()
    df = df[df["value"] > 0]
    return df.sort_values("value", ascending=False).reset_index(drop=True)


def revenue_by_month() -> pd.DataFrame:
    rows = db.fetch_all(
        """
        SELECT substr(created_at, 1, 7) AS month, SUM(amount) AS revenue
        FROM transactions
        WHERE type = 'income' AND status = 'paid'
        GROUP BY substr(created_at, 1, 7)
        ORDER BY month DESC
        """
    )
    df = pd.DataFrame([dict(r) for r in rows])
    if df.empty:
        return pd.DataFrame(columns=["month", "revenue"])
    return df


def kpis(today: date | None = None) -> dict[str, float]:
    today = today or date.today()
    first = utils.month_start(today).isoformat()
    active = db.fetch_one("SELECT COUNT(*) AS c FROM students WHERE status='active'")["c"]
    debtors = db.fetch_one("SELECT COUNT(*) AS c FROM students WHERE status='debt'")["c"]
    professors = db.fetch_one("SELECT COUNT(*) AS c FROM professors")["c"]
    revenue = db.fetch_one(
        "SELECT COALESCE(SUM(amount),0) AS s FROM transactions WHERE type='income' AND status='paid' AND created_at >= ?",
        (first,),
    )["s"]
    return {
        "active_students": int(active),
        "monthly_revenue": float(revenue),
        "debtors": int(debtors),
        "professors": int(professors),
    }
