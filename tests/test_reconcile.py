from datetime import date, datetime

import pytest

import reconcile
from models import FixedExpense, LedgerEntry, Subscription

RENT = FixedExpense(id=1, category="Aluguel", description="Aluguel do galpão", amount=3500.0, due_day=5)
INTERNET = FixedExpense(id=2, category="Utilidades", description="Internet", amount=120.0, due_day=31)
ANA = Subscription(student_id=7, full_name="Ana Souza", phone="11999990001", due_day=10, amount=150.0, plan_name="Mensal")


def entry(entry_id, type="expense", category="Outros", description="", amount=1.0, status="paid", due=None, created=None, **kw):
    return LedgerEntry(
        id=entry_id,
        type=type,
        category=category,
        description=description,
        amount=amount,
        status=status,
        due_date=due,
        created_at=created or datetime(2024, 3, 1, 9, 0),
        **kw,
    )


MARCH = (date(2024, 3, 1), date(2024, 3, 31))


def test_unmatched_fixed_expense_becomes_pending_projection():
    ghosts = reconcile.project_fixed_expenses([RENT], [], *MARCH)

    assert len(ghosts) == 1
    g = ghosts[0]
    assert g.id == "ghost-1-2024-03-05"
    assert g.is_ghost
    assert g.type == "expense"
    assert g.status == "pending"
    assert g.due_date == date(2024, 3, 5)
    assert g.category == "Aluguel"
    assert g.description == "Aluguel do galpão"
    assert g.amount == 3500.0
    assert g.fixed_expense_id == 1


def test_due_day_is_clamped_to_month_end():
    feb_leap = reconcile.project_fixed_expenses([INTERNET], [], date(2024, 2, 1), date(2024, 2, 29))
    feb = reconcile.project_fixed_expenses([INTERNET], [], date(2023, 2, 1), date(2023, 2, 28))

    assert feb_leap[0].due_date == date(2024, 2, 29)
    assert feb[0].due_date == date(2023, 2, 28)


def test_linked_entry_satisfies_template_whatever_its_amount_and_text():
    paid = entry(10, category="Diversos", amount=3400.0, due=date(2024, 3, 12), fixed_expense_id=1)

    assert reconcile.project_fixed_expenses([RENT], [paid], *MARCH) == []


def test_entry_linked_to_another_template_does_not_satisfy():
    # Same amount and category as RENT, but explicitly paid against template 2
    other = entry(11, category="Aluguel", amount=3500.0, due=date(2024, 3, 5), fixed_expense_id=2)

    ghosts = reconcile.project_fixed_expenses([RENT], [other], *MARCH)

    assert [g.id for g in ghosts] == ["ghost-1-2024-03-05"]


def test_unlinked_entry_matches_on_amount_and_text():
    by_category = entry(12, category="aluguel", amount=3500.005, due=date(2024, 3, 7))
    by_description = entry(13, category="Casa", description="Aluguel do galpão março", amount=3500.0)

    assert reconcile.project_fixed_expenses([RENT], [by_category], *MARCH) == []
    assert reconcile.project_fixed_expenses([RENT], [by_description], *MARCH) == []


def test_unlinked_entry_with_different_amount_does_not_match():
    close = entry(14, category="Aluguel", amount=3500.02, due=date(2024, 3, 5))

    assert len(reconcile.project_fixed_expenses([RENT], [close], *MARCH)) == 1


def test_entry_in_another_month_does_not_match():
    february = entry(15, amount=3500.0, due=date(2024, 2, 5), fixed_expense_id=1)

    assert len(reconcile.project_fixed_expenses([RENT], [february], *MARCH)) == 1


def test_entry_without_due_date_is_matched_by_creation_date():
    undated = entry(16, category="Aluguel", amount=3500.0, created=datetime(2024, 3, 20, 15, 0))

    assert reconcile.project_fixed_expenses([RENT], [undated], *MARCH) == []


def test_projections_never_satisfy_templates():
    ghost = entry("ghost-1-2024-03-05", amount=3500.0, due=date(2024, 3, 5), fixed_expense_id=1, is_ghost=True)

    assert len(reconcile.project_fixed_expenses([RENT], [ghost], *MARCH)) == 1


def test_inactive_templates_are_skipped():
    paused = FixedExpense(id=3, category="Limpeza", description="Faxina", amount=300.0, due_day=1, active=False)

    assert reconcile.project_fixed_expenses([paused], [], *MARCH) == []


def test_unpaid_subscription_becomes_income_projection():
    ghosts = reconcile.project_subscriptions([ANA], [], *MARCH)

    assert len(ghosts) == 1
    g = ghosts[0]
    assert g.id == "ghost-student-7-2024-03-10"
    assert g.type == "income"
    assert g.category == "Mensalidade"
    assert g.description == "Ana Souza"
    assert g.phone == "11999990001"
    assert g.student_id == 7
    assert g.amount == 150.0


def test_paid_tuition_of_the_student_satisfies_subscription():
    paid = entry(20, type="income", category="Mensalidade", amount=150.0, due=date(2024, 3, 10), student_id=7)

    assert reconcile.project_subscriptions([ANA], [paid], *MARCH) == []


@pytest.mark.parametrize(
    "kw",
    [
        {"status": "pending", "student_id": 7},
        {"student_id": 8},
        {"student_id": None, "description": "Ana Souza"},
        {"student_id": 7, "due": date(2024, 4, 10)},
    ],
)
def test_subscription_needs_paid_linked_income_in_the_same_month(kw):
    params = {"type": "income", "category": "Mensalidade", "amount": 150.0, "due": date(2024, 3, 10)}
    params.update(kw)

    assert len(reconcile.project_subscriptions([ANA], [entry(21, **params)], *MARCH)) == 1


def test_multi_month_period_projects_every_month():
    ghosts = reconcile.reconcile([RENT], [ANA], [], date(2024, 1, 1), date(2024, 3, 31))

    assert [g.id for g in ghosts] == [
        "ghost-1-2024-01-05",
        "ghost-student-7-2024-01-10",
        "ghost-1-2024-02-05",
        "ghost-student-7-2024-02-10",
        "ghost-1-2024-03-05",
        "ghost-student-7-2024-03-10",
    ]


def test_payment_in_one_month_only_clears_that_month():
    paid_feb = entry(30, amount=3500.0, due=date(2024, 2, 5), fixed_expense_id=1)

    ghosts = reconcile.reconcile([RENT], [], [paid_feb], date(2024, 1, 1), date(2024, 3, 31))

    assert [g.due_date for g in ghosts] == [date(2024, 1, 5), date(2024, 3, 5)]


def test_equal_due_dates_keep_expenses_before_income():
    same_day = FixedExpense(id=4, category="Água", description="Conta de água", amount=80.0, due_day=10)

    ghosts = reconcile.reconcile([same_day], [ANA], [], *MARCH)

    assert [g.type for g in ghosts] == ["expense", "income"]


def test_reconcile_is_stable_across_runs():
    entries = [entry(40, amount=3500.0, due=date(2024, 3, 5), fixed_expense_id=1)]

    first = reconcile.reconcile([RENT, INTERNET], [ANA], entries, *MARCH)
    second = reconcile.reconcile([RENT, INTERNET], [ANA], entries, *MARCH)

    assert first == second
    assert [g.id for g in first] == ["ghost-student-7-2024-03-10", "ghost-2-2024-03-31"]


def test_reconcile_rejects_inverted_period():
    with pytest.raises(ValueError):
        reconcile.reconcile([RENT], [], [], date(2024, 3, 31), date(2024, 3, 1))


def test_merge_pending_deduplicates_and_sorts():
    real = entry(50, status="pending", due=date(2024, 3, 20))
    ghosts = reconcile.project_fixed_expenses([RENT], [], *MARCH)

    merged = reconcile.merge_pending([real, real], ghosts)

    assert [e.id for e in merged] == ["ghost-1-2024-03-05", 50]


def test_ghost_ids():
    assert reconcile.is_ghost_id("ghost-student-7-2024-03-10")
    assert not reconcile.is_ghost_id(7)
    assert not reconcile.is_ghost_id("7")


def test_no_tuition_for_months_before_enrollment():
    newcomer = Subscription(
        student_id=9, full_name="Nova Aluna", phone="11999990009", due_day=10, amount=150.0, since=date(2024, 3, 15)
    )

    ghosts = reconcile.project_subscriptions([newcomer], [], date(2024, 1, 1), date(2024, 3, 31))

    assert [g.id for g in ghosts] == ["ghost-student-9-2024-03-10"]


def test_no_expense_for_months_before_it_was_registered():
    cleaning = FixedExpense(
        id=5, category="Limpeza", description="Faxina", amount=300.0, due_day=1, since=date(2024, 2, 20)
    )

    ghosts = reconcile.project_fixed_expenses([cleaning], [], date(2024, 1, 1), date(2024, 3, 31))

    assert [g.due_date for g in ghosts] == [date(2024, 2, 1), date(2024, 3, 1)]
