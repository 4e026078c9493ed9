"""
app.py
Streamlit academy back-office (students, classes, financial, billing automation, POS).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
from datetime import date

import pandas as pd
import streamlit as st

import auth
import billing
import classes
import db
import finance
import pos
import reconcile
import students
import utils
import whatsapp
from models import BELTS, PERIOD_PRESETS, STUDENT_STATUSES, WEEKDAYS

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Academy Back-office", layout="wide")


def init_once():
    # Initialize DB + default operator if needed
    db.init_db(auth.hash_password("admin123"))


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("Logged out.")


def login_screen():
    st.title("🔐 Login")

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value="admin")
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(username.strip(), password):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default operator:\n\n"
            "- username: **admin**\n"
            "- password: **admin123**\n\n"
            "You will be forced to change it on first login."
        )


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(new1, new2)
        for e in errors:
            st.error(e)
        if not errors:
            auth.change_password(st.session_state.username, new1)
            st.success("Password updated. You can continue.")
            st.rerun()


def run_action(label: str, fn, *args, **kwargs):
    """Run an operator action; on failure log it and show a blocking error."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        logger.exception("%s failed", label)
        st.error(f"{label} failed: {e}")
        st.stop()


def entries_frame(entries) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "id": e.id,
                "type": e.type,
                "category": e.category,
                "description": e.description,
                "amount": utils.format_currency(e.amount),
                "status": e.status,
                "due": e.reference_date.isoformat(),
                "projected": "👻" if e.is_ghost else "",
            }
            for e in entries
        ]
    )


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Dashboard")

    k = finance.kpis()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Active students", k["active_students"])
    c2.metric("Revenue (current month)", utils.format_currency(k["monthly_revenue"]))
    c3.metric("Debtors", k["debtors"])
    c4.metric("Professors", k["professors"])

    st.divider()

    st.subheader("Today's classes")
    today_rows = classes.todays_classes()
    if today_rows:
        st.dataframe(
            pd.DataFrame([{"time": r["schedule_time"], "class": r["name"], "professor": r["professor_name"]} for r in today_rows]),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("No classes scheduled for today.")

    st.subheader("Revenue summary by month")
    st.dataframe(finance.revenue_by_month(), use_container_width=True, hide_index=True)

    st.subheader("Recent activity")
    left, right = st.columns(2)
    with left:
        st.caption("Newest students")
        for s in students.recent_students():
            st.write(f"👤 {s.full_name} · {s.created_at:%d/%m/%Y}")
    with right:
        st.caption("Latest transactions")
        for e in finance.recent_transactions():
            sign = "+" if e.type == "income" else "-"
            st.write(f"{sign} {utils.format_currency(e.amount)} · {e.label} · {e.status}")


def student_form(plans, existing=None):
    if existing:
        st.subheader(f"✏️ Edit Student (ID: {existing.id})")
    else:
        st.subheader("➕ Add Student")

    plan_labels = ["(no plan)"] + [f"{p.name} - {utils.format_currency(p.price)}" for p in plans]
    plan_ids = [None] + [p.id for p in plans]

    col1, col2, col3 = st.columns(3)
    with col1:
        full_name = st.text_input("Full name", value=existing.full_name if existing else "")
        phone = st.text_input("Phone (with area code)", value=(existing.phone or "") if existing else "")
        email = st.text_input("Email (optional)", value=(existing.email or "") if existing else "")
    with col2:
        plan_index = plan_ids.index(existing.plan_id) if existing and existing.plan_id in plan_ids else 0
        plan_label = st.selectbox("Plan", plan_labels, index=plan_index)
        due_day = st.number_input("Due day", min_value=1, max_value=31, value=existing.due_day if existing else 10)
        status = st.selectbox(
            "Status", STUDENT_STATUSES, index=STUDENT_STATUSES.index(existing.status) if existing else 0
        )
    with col3:
        belt = st.selectbox("Belt", BELTS, index=BELTS.index(existing.belt) if existing and existing.belt in BELTS else 0)
        degrees = st.number_input("Degrees", min_value=0, max_value=10, value=existing.degrees if existing else 0)

    errors = utils.validate_student_inputs(full_name, phone, due_day)
    for e in errors:
        st.error(e)

    if st.button("Save", type="primary", disabled=bool(errors)):
        run_action(
            "Saving student",
            students.save_student,
            full_name,
            phone,
            email,
            plan_ids[plan_labels.index(plan_label)],
            int(due_day),
            status,
            belt,
            int(degrees),
            student_id=existing.id if existing else None,
        )
        st.success("Student saved.")
        st.rerun()


def students_page():
    st.header("👥 Students")

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/phone)", key="student_search")
        status_filter = st.selectbox("Status", ["All", *STUDENT_STATUSES], key="student_status_filter")

    rows = students.fetch_students(search=search, status_filter=status_filter)
    plans = students.fetch_plans()
    st.dataframe(
        pd.DataFrame([s.__dict__ for s in rows]) if rows else pd.DataFrame(),
        use_container_width=True,
        hide_index=True,
    )

    st.divider()

    selected_id = st.selectbox("Student ID", options=["(none)"] + [str(s.id) for s in rows])
    if selected_id != "(none)":
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Edit"):
                st.session_state.edit_student_id = int(selected_id)
                st.rerun()
        with c2:
            delete_confirm = st.checkbox("Confirm delete", value=False)
            if st.button("Delete", disabled=not delete_confirm):
                run_action("Deleting student", students.delete_student, int(selected_id))
                st.success("Student deleted.")
                st.rerun()

        st.subheader("💳 Financial history")
        history = finance.fetch_student_transactions(int(selected_id))
        if history:
            st.dataframe(entries_frame(history), use_container_width=True, hide_index=True)
            paid = sum(e.amount for e in history if e.type == "income" and e.status == "paid")
            st.caption(f"Total paid: {utils.format_currency(paid)}")
        else:
            st.caption("No transactions for this student yet.")

    st.divider()

    if st.session_state.get("edit_student_id"):
        existing = students.get_student(st.session_state.edit_student_id)
        if existing:
            student_form(plans, existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_student_id = None
            st.rerun()
    else:
        student_form(plans)

    st.divider()

    st.subheader("🥋 Graduation")
    grads = students.graduation_candidates()
    if grads:
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "student": g.student.full_name,
                        "belt": g.student.belt,
                        "classes": f"{g.classes_attended}/{g.required}",
                        "progress": round(g.progress),
                        "next": g.next_milestone,
                        "eligible": "✅" if g.eligible else "",
                    }
                    for g in grads
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
        eligible = {g.student.full_name: g for g in grads if g.eligible}
        if eligible:
            name = st.selectbox("Promote", list(eligible))
            g = eligible[name]
            new_belt = st.selectbox("New belt", BELTS, index=BELTS.index(g.student.belt) if g.student.belt in BELTS else 0)
            new_degrees = st.number_input("New degrees", min_value=0, max_value=10, value=min(g.student.degrees + 1, 4))
            if st.button("Register promotion"):
                run_action("Promotion", students.promote, g.student.id, new_belt, int(new_degrees))
                st.success("Promotion registered.")
                st.rerun()


def classes_page():
    st.header("📅 Classes")

    professors = finance.fetch_professors()
    prof_options = {"(none)": None} | {p.full_name: p.id for p in professors}

    with st.expander("➕ Add class"):
        name = st.text_input("Class name")
        schedule_time = st.text_input("Time (HH:MM)", value="19:00")
        days = st.multiselect("Days", WEEKDAYS)
        prof = st.selectbox("Professor", list(prof_options))
        if st.button("Save class", disabled=not name.strip()):
            run_action("Saving class", classes.save_class, name, schedule_time, days, prof_options[prof])
            st.rerun()

    rows = classes.fetch_classes()
    if not rows:
        st.info("No classes yet.")
        return

    st.dataframe(pd.DataFrame([dict(r) for r in rows]), use_container_width=True, hide_index=True)

    st.subheader("Attendance")
    class_options = {f"{r['schedule_time']} {r['name']}": r["id"] for r in rows}
    chosen = st.selectbox("Class", list(class_options))
    class_id = class_options[chosen]
    day = st.date_input("Date", value=date.today())

    roster = students.fetch_students(status_filter="active")
    already = {a.student_id for a in classes.fetch_attendance(class_id, day) if a.present}
    present = {s.id for s in roster if st.checkbox(s.full_name, value=s.id in already, key=f"att_{class_id}_{day}_{s.id}")}

    if st.button("Save attendance", type="primary"):
        count = run_action("Saving attendance", classes.save_attendance, class_id, day, present, [s.id for s in roster])
        run_action("Confirming session", classes.confirm_session, class_id, day)
        st.success(f"Attendance saved ({count} present).")


def financial_page():
    st.header("💰 Financial")

    preset = st.selectbox("Period", list(PERIOD_PRESETS), format_func=PERIOD_PRESETS.get)
    start, end = utils.period_range(preset)

    entries = finance.fetch_transactions(start, end)
    pending = finance.fetch_pending_expenses()
    ghosts = run_action("Loading projections", finance.projected_entries, start, end)
    subscriptions = students.fetch_subscriptions()
    mrr = finance.recurring_revenue(subscriptions)

    totals = finance.summary(entries)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Income (paid)", utils.format_currency(totals["income"]))
    c2.metric("Expenses (paid)", utils.format_currency(totals["expense"]))
    c3.metric("Net profit", utils.format_currency(totals["profit"]))
    c4.metric("Recurring revenue (MRR)", utils.format_currency(mrr))

    tab_payable, tab_receivable, tab_flow, tab_payroll, tab_all = st.tabs(
        ["Accounts payable", "Accounts receivable", "Cash flow", "Payroll", "Transactions"]
    )

    with tab_payable:
        payable = reconcile.merge_pending(pending, [g for g in ghosts if g.type == "expense"])
        st.metric("Needed in the next 7 days", utils.format_currency(finance.payable_within(payable)))
        _settle_list(payable, "pay")

    with tab_receivable:
        receivable = [g for g in ghosts if g.type == "income"]
        _settle_list(receivable, "receive")
        _charge_form(receivable)

    with tab_flow:
        flow = finance.cash_flow(entries, [*pending, *ghosts], mrr)
        if not flow.empty:
            st.bar_chart(flow.set_index("date"))
        st.subheader("Expenses by category")
        st.dataframe(finance.expense_breakdown(entries, [*pending, *ghosts]), use_container_width=True, hide_index=True)

    with tab_payroll:
        for line in finance.payroll_for_period(start, end):
            cols = st.columns([3, 1, 1, 1])
            cols[0].write(f"**{line.name}** ({line.sessions} classes)")
            cols[1].write(utils.format_currency(line.hourly_rate))
            cols[2].write(utils.format_currency(line.total))
            if line.paid:
                cols[3].write("Paid ✅")
            elif cols[3].button("Pay", key=f"payroll_{line.professor_id}"):
                run_action("Paying professor", finance.pay_professor, line)
                st.rerun()

    with tab_all:
        _transaction_form()
        if entries:
            st.dataframe(entries_frame(entries), use_container_width=True, hide_index=True)
            st.download_button(
                "Download transactions.csv",
                data=utils.transactions_to_csv_bytes(entries),
                file_name="transactions.csv",
                mime="text/csv",
            )
            chosen_id = st.selectbox("Transaction ID", ["(none)"] + [str(e.id) for e in entries])
            if chosen_id != "(none)":
                chosen = next(e for e in entries if str(e.id) == chosen_id)
                new_amount = st.number_input("Amount", min_value=0.0, value=chosen.amount, key=f"edit_amount_{chosen_id}")
                new_due = st.date_input("Due date", value=chosen.reference_date, key=f"edit_due_{chosen_id}")
                c1, c2, c3 = st.columns(3)
                if c3.button("Save changes"):
                    run_action(
                        "Updating transaction",
                        finance.update_transaction,
                        chosen.id,
                        chosen.type,
                        chosen.category,
                        chosen.description,
                        new_amount,
                        chosen.status,
                        new_due,
                    )
                    st.rerun()
                if c1.button("Toggle paid/pending"):
                    run_action("Updating status", finance.toggle_status, int(chosen_id))
                    st.rerun()
                if c2.button("Delete transaction"):
                    run_action("Deleting transaction", finance.delete_transaction, int(chosen_id))
                    st.rerun()
        else:
            st.caption("No transactions in this period.")


def _settle_list(entries, verb: str):
    if not entries:
        st.caption("Nothing pending.")
        return
    st.dataframe(entries_frame(entries), use_container_width=True, hide_index=True)
    options = {f"{e.reference_date} {e.label} {utils.format_currency(e.amount)}": e for e in entries}
    chosen = st.selectbox(f"Select to {verb}", list(options), key=f"settle_{verb}")
    if st.button(f"Mark as {'received' if verb == 'receive' else 'paid'}", key=f"settle_btn_{verb}"):
        e = options[chosen]
        if e.is_ghost:
            run_action("Registering payment", finance.settle_projected, e)
        else:
            run_action("Updating status", finance.toggle_status, e.id)
        st.success("Payment registered.")
        st.rerun()


def _charge_form(receivable):
    with_phone = {f"{e.description} · {e.reference_date:%d/%m}": e for e in receivable if e.phone}
    if not with_phone:
        return
    st.subheader("Send WhatsApp charge")
    chosen = st.selectbox("Student", list(with_phone), key="charge_pick")
    st.caption(billing.charge_message(with_phone[chosen]))
    if st.button("Send charge"):
        config = whatsapp.load_config()
        if not config.is_configured:
            st.error("WhatsApp is not configured.")
            return
        phone = run_action("Sending charge", billing.send_charge, with_phone[chosen], config.client(), config.instance_name)
        st.success(f"Charge sent to {phone}.")


def _transaction_form():
    st.subheader("Add transaction")
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        kind = st.selectbox("Type", ["income", "expense"])
    with c2:
        category = st.text_input("Category", value="Geral")
        description = st.text_input("Description")
    with c3:
        amount = st.text_input("Amount", value="0")
        status = st.selectbox("Status", ["paid", "pending", "overdue"])
    with c4:
        due = st.date_input("Due date", value=date.today())
        student_options = {"(none)": None} | {f"{s.full_name} (#{s.id})": s.id for s in students.fetch_students()}
        student = st.selectbox("Student", list(student_options), key="tx_student")

    errors = utils.validate_transaction_inputs(kind, category, amount, status)
    if st.button("Add", disabled=bool(errors)):
        run_action(
            "Adding transaction",
            finance.add_transaction,
            kind,
            category,
            description,
            float(amount),
            status,
            due,
            student_id=student_options[student],
        )
        st.success("Transaction added.")
        st.rerun()


def billing_page():
    st.header("🤖 Billing automation")

    config = whatsapp.load_config()
    today = date.today()
    start, end = billing.candidate_window(today)

    if st.button("Refresh candidates") or "billing_candidates" not in st.session_state:
        entries = finance.fetch_transactions(start, end)
        ghosts = run_action("Loading projections", finance.projected_entries, start, end)
        pending_income = [e for e in entries if e.type == "income" and e.status == "pending"]
        pool = billing.attach_phones([*pending_income, *ghosts], students.fetch_students())
        st.session_state.billing_candidates = billing.select_candidates(pool, today)

    candidates = st.session_state.billing_candidates
    preventive = sum(1 for c in candidates if c.kind == "preventive")
    overdue = sum(1 for c in candidates if c.kind == "overdue")
    st.caption(f"Suggested for today ({today:%d/%m}): {preventive} preventive, {overdue} overdue")

    if not candidates:
        st.success("No automatic charges pending for today.")
    for i, c in enumerate(candidates):
        icon = {"sent": "✅", "error": "⚠️", "sending": "⏳"}.get(c.status, "")
        label = f"{c.entry.description} · {utils.format_currency(c.entry.amount)} · " + (
            "due tomorrow" if c.kind == "preventive" else f"{c.days_diff} days late"
        )
        c.selected = st.checkbox(f"{icon} {label}", value=c.selected, disabled=c.status != "pending", key=f"cand_{i}")
        st.caption(f'"{c.message}"')

    to_send = [c for c in candidates if c.selected and c.status == "pending"]
    if st.button(f"Send {len(to_send)} messages", type="primary", disabled=not to_send):
        if not config.is_configured:
            st.error("WhatsApp is not configured.")
            return
        client = config.client()
        with st.spinner("Sending..."):
            result = billing.send_batch(candidates, client, config.instance_name)
        st.success(f"Done: {result.sent} sent, {result.errors} errors.")

    st.divider()

    st.subheader("Due-day reminder bot")
    st.caption(f"Reminds every active student whose due day is today ({today.day}).")
    c1, c2 = st.columns(2)
    dry_run = c1.button("Simulate (logs only)")
    live = c2.button("Run now")
    if dry_run or live:
        if not config.is_configured:
            st.error("Configure the WhatsApp connection first!")
            return
        report = billing.run_due_day_reminders(
            students.fetch_subscriptions(),
            config.client(),
            config.instance_name,
            today=today,
            gym_name=db.get_setting("gym_name"),
            dry_run=dry_run,
        )
        st.info(f"Processed: {report.processed}, sent: {report.sent}, errors: {report.errors}")
        st.code("\n".join(report.logs))


def pos_page():
    st.header("🛒 Point of sale")

    if "cart" not in st.session_state:
        st.session_state.cart = []

    left, right = st.columns([2, 1])
    with left:
        search = st.text_input("Search products")
        for p in pos.fetch_products(search):
            cols = st.columns([3, 1, 1])
            stock = "∞" if p.stock_quantity is None else p.stock_quantity
            cols[0].write(f"**{p.name}** (stock: {stock})")
            cols[1].write(utils.format_currency(p.price))
            if cols[2].button("Add", key=f"add_{p.id}", disabled=p.stock_quantity == 0):
                pos.add_to_cart(st.session_state.cart, p)
                st.rerun()

        with st.expander("➕ New product"):
            name = st.text_input("Name")
            price = st.number_input("Price", min_value=0.0, step=1.0)
            stock = st.number_input("Stock (-1 = unlimited)", min_value=-1, value=0)
            if st.button("Save product", disabled=not name.strip()):
                run_action("Saving product", pos.save_product, name, price, None if stock < 0 else int(stock))
                st.rerun()

        with st.expander("🗑 Remove product"):
            catalogue = {p.name: p.id for p in pos.fetch_products()}
            if catalogue:
                victim = st.selectbox("Product", list(catalogue))
                if st.button("Remove product"):
                    run_action("Removing product", pos.delete_product, catalogue[victim])
                    st.rerun()

    with right:
        st.subheader("Cart")
        for item in st.session_state.cart:
            cols = st.columns([3, 1, 1, 1])
            cols[0].write(f"{item.quantity}x {item.product.name}")
            if cols[1].button("➖", key=f"minus_{item.product.id}"):
                pos.update_quantity(st.session_state.cart, item.product.id, -1)
                st.rerun()
            if cols[2].button("➕", key=f"plus_{item.product.id}"):
                pos.update_quantity(st.session_state.cart, item.product.id, 1)
                st.rerun()
            if cols[3].button("🗑", key=f"rm_{item.product.id}"):
                st.session_state.cart = pos.remove_from_cart(st.session_state.cart, item.product.id)
                st.rerun()
        st.metric("Total", utils.format_currency(pos.cart_total(st.session_state.cart)))
        if st.button("Checkout", type="primary", disabled=not st.session_state.cart):
            run_action("Processing sale", pos.checkout, st.session_state.cart)
            st.session_state.cart = []
            st.success("Sale completed.")
            st.rerun()


def settings_page():
    st.header("⚙️ Settings")

    st.subheader("Gym info")
    gym_name = st.text_input("Gym name", value=db.get_setting("gym_name", "") or "")
    if st.button("Save gym info"):
        db.set_setting("gym_name", gym_name.strip())
        st.success("Saved.")

    st.divider()

    st.subheader("WhatsApp (Evolution API)")
    config = whatsapp.load_config()
    url = st.text_input("API URL", value=config.base_url)
    key = st.text_input("API key", value=config.api_key, type="password")
    instance = st.text_input("Instance name", value=config.instance_name)
    c1, c2 = st.columns(2)
    if c1.button("Save connection"):
        whatsapp.save_config(whatsapp.GatewayConfig(url, key, instance))
        st.success("Connection saved.")
    if c2.button("Check connection"):
        try:
            state = whatsapp.GatewayConfig(url, key, instance).client().connection_state(instance)
            st.json(state)
        except whatsapp.GatewayError as e:
            logger.exception("Connection check failed")
            st.error(str(e))

    st.divider()

    st.subheader("Plans")
    for p in students.fetch_plans():
        st.write(f"**{p.name}** · {utils.format_currency(p.price)} · {p.weekly_limit or '∞'}x/week")
    pn = st.text_input("Plan name")
    pp = st.text_input("Plan price", value="150")
    pw = st.text_input("Weekly limit (0 = unlimited)", value="0")
    plan_errors = utils.validate_plan_inputs(pn, pp, pw)
    if st.button("Add plan", disabled=bool(plan_errors)):
        run_action("Saving plan", students.save_plan, pn, float(pp), int(pw))
        st.rerun()

    st.divider()

    st.subheader("Fixed expenses")
    for fe in finance.fetch_fixed_expenses():
        cols = st.columns([4, 1])
        cols[0].write(f"[{fe.category}] {fe.description} · {utils.format_currency(fe.amount)} · day {fe.due_day}")
        if cols[1].button("Disable" if fe.active else "Enable", key=f"fe_{fe.id}"):
            run_action("Updating fixed expense", finance.set_fixed_expense_active, fe.id, not fe.active)
            st.rerun()
    fc = st.text_input("Category", key="fe_cat")
    fd = st.text_input("Description", key="fe_desc")
    fa = st.text_input("Amount", value="0", key="fe_amount")
    fday = st.text_input("Due day", value="5", key="fe_day")
    fe_errors = utils.validate_fixed_expense_inputs(fc, fd, fa, fday)
    if st.button("Add fixed expense", disabled=bool(fe_errors)):
        run_action("Saving fixed expense", finance.save_fixed_expense, fc, fd, float(fa), int(fday))
        st.rerun()

    st.divider()

    st.subheader("Categories")
    for c in finance.fetch_categories():
        cols = st.columns([4, 1])
        cols[0].write(f"{c['name']} ({c['type']})")
        if cols[1].button("Remove", key=f"cat_{c['id']}"):
            finance.delete_category(c["id"])
            st.rerun()
    cat_name = st.text_input("New category")
    cat_kind = st.selectbox("Category type", ["income", "expense"])
    if st.button("Add category", disabled=not cat_name.strip()):
        run_action("Adding category", finance.add_category, cat_name, cat_kind)
        st.rerun()

    st.divider()

    st.subheader("Professors")
    for p in finance.fetch_professors():
        cols = st.columns([4, 1])
        cols[0].write(f"**{p.full_name}** · {p.modality or '-'} · {utils.format_currency(p.hourly_rate)}/class")
        if cols[1].button("Remove", key=f"prof_{p.id}"):
            run_action("Removing professor", finance.delete_professor, p.id)
            st.rerun()
    prof_name = st.text_input("Professor name")
    prof_mod = st.text_input("Modality")
    prof_rate = st.number_input("Rate per class", min_value=0.0, step=5.0)
    if st.button("Add professor", disabled=not prof_name.strip()):
        run_action("Saving professor", finance.save_professor, prof_name, prof_mod or None, prof_rate)
        st.rerun()

    st.divider()

    st.subheader("Operators")
    st.dataframe(pd.DataFrame([dict(r) for r in auth.fetch_operators()]), use_container_width=True, hide_index=True)
    new_user = st.text_input("Username", key="op_user")
    new_role = st.selectbox("Role", ["secretary", "professor", "admin"])
    new_pass = st.text_input("Initial password", type="password", key="op_pass")
    if st.button("Add operator", disabled=len(new_pass) < auth.MIN_PASSWORD_LENGTH or not new_user.strip()):
        run_action("Adding operator", auth.add_operator, new_user, new_pass, new_role)
        st.rerun()

    st.divider()

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(p1, p2)
        for e in errors:
            st.error(e)
        if not errors:
            auth.change_password(st.session_state.username, p1)
            st.success("Password updated.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert sample plans, students, fixed expenses and transactions (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data()
        st.success("Sample data inserted.")
        st.rerun()


def main_app():
    st.sidebar.title("🥋 Academy")
    st.sidebar.caption(f"Logged in as: {st.session_state.username}")

    pages = {
        "Dashboard": dashboard_page,
        "Students": students_page,
        "Classes": classes_page,
        "Financial": financial_page,
        "Billing": billing_page,
        "POS": pos_page,
        "Settings": settings_page,
    }
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    names = list(pages)
    st.session_state.page = st.sidebar.radio("Navigate", names, index=names.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    pages[st.session_state.page]()


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
