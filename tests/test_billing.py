from datetime import date, datetime, timedelta

import pytest

import billing
import finance
import students
from models import LedgerEntry, Student, Subscription

TODAY = date(2024, 3, 10)


def receivable(entry_id, due, phone="11999990001", name="Ana Souza", amount=150.0, status="pending", type="income", **kw):
    return LedgerEntry(
        id=entry_id,
        type=type,
        category="Mensalidade",
        description=name,
        amount=amount,
        status=status,
        due_date=due,
        created_at=datetime.combine(due, datetime.min.time()),
        phone=phone,
        **kw,
    )


class FakeClient:
    def __init__(self, fail_numbers=()):
        self.fail_numbers = set(fail_numbers)
        self.sent: list[tuple[str, str, str]] = []

    def send_text(self, instance_name, number, text):
        if number in self.fail_numbers:
            raise RuntimeError("gateway down")
        self.sent.append((instance_name, number, text))
        return {"key": {"id": "msg"}}


def test_due_tomorrow_is_preventive():
    e = receivable("ghost-student-1-2024-03-11", date(2024, 3, 11))

    [c] = billing.select_candidates([e], TODAY)

    assert c.kind == "preventive"
    assert c.days_diff == 1
    assert c.selected
    assert c.status == "pending"
    assert c.message == "Olá Ana Souza! Lembra que sua mensalidade de R$ 150,00 vence amanhã? 🥋"


def test_even_days_late_is_overdue():
    e = receivable(5, date(2024, 3, 6))

    [c] = billing.select_candidates([e], TODAY)

    assert c.kind == "overdue"
    assert c.days_diff == 4
    assert c.message == (
        "Olá Ana Souza. Consta em nosso sistema uma pendência de R$ 150,00 "
        "(4 dias de atraso). Pode nos enviar o comprovante?"
    )


@pytest.mark.parametrize("offset", [0, 1, 3, 5, -2, -10])
def test_other_days_are_not_selected(offset):
    e = receivable(6, TODAY - timedelta(days=offset))

    assert billing.select_candidates([e], TODAY) == []


def test_entries_without_phone_or_not_pending_income_are_skipped():
    due = date(2024, 3, 11)
    entries = [
        receivable(1, due, phone=None),
        receivable(2, due, phone=""),
        receivable(3, due, status="paid"),
        receivable(4, due, status="overdue"),
        receivable(5, due, type="expense"),
    ]

    assert billing.select_candidates(entries, TODAY) == []


def test_missing_name_falls_back_to_generic_greeting():
    e = receivable(7, date(2024, 3, 11), name="")

    [c] = billing.select_candidates([e], TODAY)

    assert c.message.startswith("Olá Aluno!")


def test_attach_phones_fills_only_missing_numbers():
    students = [
        Student(id=1, full_name="Ana", phone="11911112222", email=None, plan_id=None, due_day=10, status="active"),
        Student(id=2, full_name="Bia", phone=None, email=None, plan_id=None, due_day=10, status="active"),
    ]
    entries = [
        receivable(1, TODAY, phone=None, student_id=1),
        receivable(2, TODAY, phone=None, student_id=2),
        receivable(3, TODAY, phone="11900000000", student_id=1),
    ]

    out = billing.attach_phones(entries, students)

    assert [e.phone for e in out] == ["11911112222", None, "11900000000"]


def test_send_batch_sends_selected_and_isolates_failures():
    due = date(2024, 3, 11)
    candidates = billing.select_candidates(
        [
            receivable(1, due, phone="(11) 99999-0001", name="Ana"),
            receivable(2, due, phone="11999990002", name="Bruno"),
            receivable(3, due, phone="11999990003", name="Carla"),
            receivable(4, due, phone="11999990004", name="Diego"),
        ],
        TODAY,
    )
    candidates[3].selected = False
    client = FakeClient(fail_numbers={"5511999990002"})
    sleeps = []
    updates = []

    result = billing.send_batch(candidates, client, "dojo", sleep=sleeps.append, on_update=lambda c: updates.append(c.status))

    assert result.sent == 2
    assert result.errors == 1
    assert [c.status for c in candidates] == ["sent", "error", "sent", "pending"]
    assert candidates[1].error == "gateway down"
    assert [n for _, n, _ in client.sent] == ["5511999990001", "5511999990003"]
    assert all(inst == "dojo" for inst, _, _ in client.sent)
    # pause between messages only
    assert sleeps == [billing.SEND_DELAY_SECONDS] * 2
    assert updates == ["sending", "sent", "sending", "error", "sending", "sent"]


def test_send_batch_skips_candidates_already_handled():
    [c] = billing.select_candidates([receivable(1, date(2024, 3, 11))], TODAY)
    client = FakeClient()
    billing.send_batch([c], client, "dojo", sleep=lambda s: None)

    again = billing.send_batch([c], client, "dojo", sleep=lambda s: None)

    assert again.sent == 0
    assert len(client.sent) == 1


def test_toggle_only_pending_candidates():
    [c] = billing.select_candidates([receivable(1, date(2024, 3, 11))], TODAY)

    billing.toggle(c)
    assert not c.selected
    billing.toggle(c)
    assert c.selected

    c.status = "sent"
    with pytest.raises(ValueError):
        billing.toggle(c)


def test_send_charge_requires_phone():
    client = FakeClient()

    with pytest.raises(ValueError):
        billing.send_charge(receivable(1, TODAY, phone=None), client, "dojo")

    number = billing.send_charge(receivable(2, TODAY, phone="11 98888-7777"), client, "dojo")

    assert number == "5511988887777"
    assert "*R$ 150,00*" in client.sent[0][2]


def test_due_day_reminders_use_clamped_due_date():
    subs = [
        Subscription(student_id=1, full_name="Ana", phone="11999990001", due_day=31, amount=150.0, plan_name="Mensal"),
        Subscription(student_id=2, full_name="Bruno", phone="11999990002", due_day=28, amount=220.0, plan_name="Livre"),
    ]
    client = FakeClient()

    report = billing.run_due_day_reminders(subs, client, "dojo", today=date(2024, 2, 29), gym_name="Dojo Centro")

    assert report.processed == 1
    assert report.sent == 1
    assert client.sent[0][1] == "5511999990001"
    assert "vence hoje" in client.sent[0][2]
    assert "_Dojo Centro - Sistema Automático_" in client.sent[0][2]


def test_due_day_reminders_dry_run_and_missing_phone():
    subs = [
        Subscription(student_id=1, full_name="Ana", phone="11999990001", due_day=10, amount=150.0),
        Subscription(student_id=2, full_name="Bruno", phone=None, due_day=10, amount=220.0),
    ]
    client = FakeClient()

    report = billing.run_due_day_reminders(subs, client, "dojo", today=TODAY, dry_run=True)

    assert client.sent == []
    assert report.processed == 2
    assert report.sent == 0
    assert any(line.startswith("[SIMULAÇÃO] Enviaria para Ana") for line in report.logs)
    assert any("Bruno sem telefone" in line for line in report.logs)


def test_due_day_reminders_count_failures():
    subs = [Subscription(student_id=1, full_name="Ana", phone="11999990001", due_day=10, amount=150.0)]

    report = billing.run_due_day_reminders(subs, FakeClient({"5511999990001"}), "dojo", today=TODAY)

    assert report.errors == 1
    assert report.sent == 0
    assert report.logs[-1].startswith("❌ Erro ao enviar para Ana")


def test_due_day_reminders_with_nobody_due():
    report = billing.run_due_day_reminders([], FakeClient(), "dojo", today=TODAY)

    assert report.processed == 0
    assert report.logs[-1] == "✅ Nenhum aluno com vencimento hoje."


def test_candidate_window_reaches_tomorrow_at_month_end():
    assert billing.candidate_window(date(2024, 3, 10)) == (date(2024, 1, 1), date(2024, 3, 31))
    assert billing.candidate_window(date(2024, 3, 31)) == (date(2024, 1, 1), date(2024, 4, 1))


def test_month_end_run_reminds_students_due_on_the_first(fresh_db):
    plan_id = students.save_plan("Mensal", 150.0)
    students.save_student("Ana", "11999990001", None, plan_id, 1, created_at=datetime(2024, 1, 1, 9, 0))
    today = date(2024, 3, 31)

    ghosts = finance.projected_entries(*billing.candidate_window(today))
    preventive = [c for c in billing.select_candidates(ghosts, today) if c.kind == "preventive"]

    assert [c.entry.due_date for c in preventive] == [date(2024, 4, 1)]
