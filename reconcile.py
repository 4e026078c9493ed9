"""
reconcile.py
Projected ("ghost") entries for recurring charges that have no real ledger entry yet.

Fixed expenses and student subscriptions are both monthly templates. For every
calendar month of the selected period, each template is either satisfied by a
real entry in that month or materialized as a pending projection. Nothing here
touches the database: inputs are lists fetched by finance.py.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time

import utils
from models import (
    DEFAULT_DUE_DAY,
    TUITION_CATEGORY,
    FixedExpense,
    LedgerEntry,
    Subscription,
)

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01


def expense_ghost_id(fixed_expense_id: int, due: date) -> str:
    return f"ghost-{fixed_expense_id}-{due.isoformat()}"


def student_ghost_id(student_id: int, due: date) -> str:
    return f"ghost-student-{student_id}-{due.isoformat()}"


def is_ghost_id(entry_id) -> bool:
    return isinstance(entry_id, str) and entry_id.startswith("ghost-")


def _started(since: date | None, month: date) -> bool:
    return since is None or month >= utils.month_start(since)


def _fuzzy_match(entry: LedgerEntry, template: FixedExpense) -> bool:
    # Entries recorded before the template link existed
    if abs(entry.amount - template.amount) >= AMOUNT_TOLERANCE:
        return False
    haystack = entry.label.lower()
    return template.category.lower() in haystack or template.description.lower() in haystack


def satisfies_fixed_expense(entry: LedgerEntry, template: FixedExpense, due: date) -> bool:
    if entry.is_ghost or not utils.same_month(entry.reference_date, due):
        return False
    if entry.fixed_expense_id is not None:
        return entry.fixed_expense_id == template.id
    return _fuzzy_match(entry, template)


def satisfies_subscription(entry: LedgerEntry, subscription: Subscription, due: date) -> bool:
    # Income is matched on the student link only; tuition descriptions are
    # too often shared (same plan, same first name) to match on text.
    return (
        not entry.is_ghost
        and entry.type == "income"
        and entry.status == "paid"
        and entry.student_id == subscription.student_id
        and utils.same_month(entry.reference_date, due)
    )


def project_fixed_expenses(
    templates: list[FixedExpense],
    entries: list[LedgerEntry],
    start: date,
    end: date,
) -> list[LedgerEntry]:
    ghosts: list[LedgerEntry] = []
    for month in utils.iter_months(start, end):
        for fe in templates:
            if not fe.active or not _started(fe.since, month):
                continue
            due = utils.clamp_due_date(month.year, month.month, fe.due_day)
            if any(satisfies_fixed_expense(t, fe, due) for t in entries):
                continue
            ghosts.append(
                LedgerEntry(
                    id=expense_ghost_id(fe.id, due),
                    type="expense",
                    category=fe.category,
                    description=fe.description,
                    amount=fe.amount,
                    status="pending",
                    due_date=due,
                    created_at=datetime.combine(due, time(12, 0)),
                    fixed_expense_id=fe.id,
                    is_ghost=True,
                )
            )
    return _by_due_date(ghosts)


def project_subscriptions(
    subscriptions: list[Subscription],
    entries: list[LedgerEntry],
    start: date,
    end: date,
) -> list[LedgerEntry]:
    ghosts: list[LedgerEntry] = []
    for month in utils.iter_months(start, end):
        for sub in subscriptions:
            if not _started(sub.since, month):
                continue
            due = utils.clamp_due_date(month.year, month.month, sub.due_day or DEFAULT_DUE_DAY)
            if any(satisfies_subscription(t, sub, due) for t in entries):
                continue
            ghosts.append(
                LedgerEntry(
                    id=student_ghost_id(sub.student_id, due),
                    type="income",
                    category=TUITION_CATEGORY,
                    description=sub.full_name,
                    amount=sub.amount,
                    status="pending",
                    due_date=due,
                    created_at=datetime.combine(due, time(10, 0)),
                    student_id=sub.student_id,
                    phone=sub.phone,
                    is_ghost=True,
                )
            )
    return _by_due_date(ghosts)


def reconcile(
    templates: list[FixedExpense],
    subscriptions: list[Subscription],
    entries: list[LedgerEntry],
    start: date,
    end: date,
) -> list[LedgerEntry]:
    """All projections for the period (expenses first, then income), by due date."""
    if end < start:
        raise ValueError("Period end is before its start.")
    ghosts = project_fixed_expenses(templates, entries, start, end)
    ghosts += project_subscriptions(subscriptions, entries, start, end)
    logger.debug("Reconciled %s..%s: %d projected entries", start, end, len(ghosts))
    return _by_due_date(ghosts)


def merge_pending(pending: list[LedgerEntry], ghosts: list[LedgerEntry]) -> list[LedgerEntry]:
    """Real pending entries plus projections, oldest due first, each id once."""
    seen = set()
    combined = []
    for entry in [*pending, *ghosts]:
        if entry.id in seen:
            continue
        seen.add(entry.id)
        combined.append(entry)
    return _by_due_date(combined)


def _by_due_date(entries: list[LedgerEntry]) -> list[LedgerEntry]:
    # sorted() is stable: equal due dates keep input order
    return sorted(entries, key=lambda e: e.reference_date)
