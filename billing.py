"""
billing.py
WhatsApp billing automation: which pending tuition entries get a reminder today,
the message text, and the paced batch send.

Reminder policy (diff = today - due date, in days):
- diff == -1          -> "preventive" (due tomorrow)
- diff > 0, even      -> "overdue" (every other day once late)
- anything else       -> not selected this run
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import date, timedelta
from typing import Callable, Iterable

import utils
from models import (
    DEFAULT_DUE_DAY,
    BatchResult,
    BillingCandidate,
    BotReport,
    LedgerEntry,
    Student,
    Subscription,
)

logger = logging.getLogger(__name__)

SEND_DELAY_SECONDS = 1.5
DEFAULT_NAME = "Aluno"
DEFAULT_GYM_NAME = "Sua Academia"


def candidate_window(today: date | None = None) -> tuple[date, date]:
    """
    Entries worth looking at for reminders: the last three months, plus
    tomorrow so month-end runs still catch charges due on the 1st.
    """
    today = today or date.today()
    start, end = utils.period_range("last_3_months", today)
    return start, max(end, today + timedelta(days=1))


def days_diff(entry: LedgerEntry, today: date) -> int:
    return (today - entry.reference_date).days


def classify(entry: LedgerEntry, today: date) -> str | None:
    diff = days_diff(entry, today)
    if diff == -1:
        return "preventive"
    if diff > 0 and diff % 2 == 0:
        return "overdue"
    return None


def render_message(entry: LedgerEntry, kind: str, diff: int) -> str:
    name = entry.description or DEFAULT_NAME
    value = utils.format_currency(entry.amount)
    if kind == "preventive":
        return f"Olá {name}! Lembra que sua mensalidade de {value} vence amanhã? 🥋"
    return (
        f"Olá {name}. Consta em nosso sistema uma pendência de {value} "
        f"({diff} dias de atraso). Pode nos enviar o comprovante?"
    )


def attach_phones(entries: Iterable[LedgerEntry], students: Iterable[Student]) -> list[LedgerEntry]:
    """Fill the phone of real income entries from their linked student."""
    phones = {s.id: s.phone for s in students if s.phone}
    out = []
    for e in entries:
        if not e.phone and e.student_id in phones:
            e = replace(e, phone=phones[e.student_id])
        out.append(e)
    return out


def select_candidates(entries: Iterable[LedgerEntry], today: date | None = None) -> list[BillingCandidate]:
    today = today or date.today()
    candidates: list[BillingCandidate] = []
    for e in entries:
        if e.type != "income" or e.status != "pending":
            continue
        if not e.phone:
            continue
        kind = classify(e, today)
        if kind is None:
            continue
        diff = days_diff(e, today)
        candidates.append(
            BillingCandidate(
                entry=e,
                kind=kind,
                days_diff=abs(diff),
                message=render_message(e, kind, diff),
            )
        )
    return candidates


def toggle(candidate: BillingCandidate) -> None:
    if candidate.status != "pending":
        raise ValueError("Only pending candidates can be (de)selected.")
    candidate.selected = not candidate.selected


def send_batch(
    candidates: list[BillingCandidate],
    client,
    instance_name: str,
    delay: float = SEND_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    on_update: Callable[[BillingCandidate], None] | None = None,
) -> BatchResult:
    """
    Send the selected, still-pending candidates one at a time with a fixed pause
    between messages. A failure marks that candidate as "error" and the batch
    moves on.
    """
    queue = [c for c in candidates if c.selected and c.status == "pending"]
    sent = errors = 0

    for i, c in enumerate(queue):
        c.status = "sending"
        if on_update:
            on_update(c)
        try:
            client.send_text(instance_name, utils.normalize_phone(c.entry.phone), c.message)
            c.status = "sent"
            sent += 1
        except Exception as e:
            logger.exception("Reminder for entry %s failed", c.entry.id)
            c.status = "error"
            c.error = str(e)
            errors += 1
        if on_update:
            on_update(c)
        if i < len(queue) - 1:
            sleep(delay)

    logger.info("Billing batch finished: %d sent, %d errors", sent, errors)
    return BatchResult(sent=sent, errors=errors)


def charge_message(entry: LedgerEntry) -> str:
    name = entry.description or DEFAULT_NAME
    return (
        f"Olá, {name}! 🥋\n\n"
        f"Identificamos que sua mensalidade no valor de *{utils.format_currency(entry.amount)}* está em aberto.\n\n"
        "Poderia nos enviar o comprovante assim que possível? Obrigado!"
    )


def send_charge(entry: LedgerEntry, client, instance_name: str) -> str:
    """Manual one-off charge for a receivable. Returns the number messaged."""
    if not entry.phone:
        raise ValueError("Student has no phone on record.")
    phone = utils.normalize_phone(entry.phone)
    client.send_text(instance_name, phone, charge_message(entry))
    return phone


def due_day_message(sub: Subscription, gym_name: str) -> str:
    return (
        "🔔 *Lembrete de Vencimento*\n\n"
        f"Olá, {sub.full_name}!\n"
        f"Passando para lembrar que sua mensalidade do plano *{sub.plan_name or 'Plano'}* vence hoje.\n\n"
        f"Valor: {utils.format_currency(sub.amount)}\n\n"
        "Qualquer dúvida, estamos à disposição!\n"
        f"_{gym_name} - Sistema Automático_"
    )


def run_due_day_reminders(
    subscriptions: Iterable[Subscription],
    client,
    instance_name: str,
    today: date | None = None,
    gym_name: str | None = None,
    dry_run: bool = False,
) -> BotReport:
    """Remind every subscriber whose due day is today."""
    today = today or date.today()
    gym_name = gym_name or DEFAULT_GYM_NAME
    report = BotReport()
    due_today = [
        s for s in subscriptions
        if utils.clamp_due_date(today.year, today.month, s.due_day or DEFAULT_DUE_DAY) == today
    ]

    report.logs.append(f"🔍 Buscando alunos com vencimento dia {today.day}...")
    if not due_today:
        report.logs.append("✅ Nenhum aluno com vencimento hoje.")
        return report
    report.logs.append(f"📋 Encontrados {len(due_today)} alunos com vencimento hoje.")

    for sub in due_today:
        report.processed += 1
        if not sub.phone:
            report.logs.append(f"⚠️ Aluno {sub.full_name} sem telefone. Pular.")
            continue
        phone = utils.normalize_phone(sub.phone)
        message = due_day_message(sub, gym_name)
        if dry_run:
            report.logs.append(f'[SIMULAÇÃO] Enviaria para {sub.full_name}: "{message[:30]}..."')
            continue
        try:
            client.send_text(instance_name, phone, message)
            report.sent += 1
            report.logs.append(f"✅ Mensagem enviada para {sub.full_name} ({phone})")
        except Exception as e:
            logger.exception("Due-day reminder for student %s failed", sub.student_id)
            report.errors += 1
            report.logs.append(f"❌ Erro ao enviar para {sub.full_name}: {e}")
    return report
