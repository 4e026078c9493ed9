"""
students.py
Plans, students and belt progression (graduation) data access.
"""

from __future__ import annotations

from datetime import date, datetime

import classes
import db
import utils
from models import DEFAULT_DUE_DAY, GraduationStatus, Plan, Student, Subscription

WHITE_BELT_CLASSES = 30
COLORED_BELT_CLASSES = 50
DEGREES_PER_BELT = 4


# ---------- Plans ----------

def plan_from_row(r) -> Plan:
    return Plan(id=r["id"], name=r["name"], price=float(r["price"]), weekly_limit=int(r["weekly_limit"]))


def fetch_plans() -> list[Plan]:
    return [plan_from_row(r) for r in db.fetch_all("SELECT * FROM plans ORDER BY price ASC, name ASC")]


def save_plan(name: str, price: float, weekly_limit: int = 0, plan_id: int | None = None) -> int:
    if plan_id:
        db.execute(
            "UPDATE plans SET name=?, price=?, weekly_limit=? WHERE id=?",
            (name.strip(), float(price), int(weekly_limit), plan_id),
        )
        return plan_id
    return db.execute(
        "INSERT INTO plans(name, price, weekly_limit, created_at) VALUES(?,?,?,?)",
        (name.strip(), float(price), int(weekly_limit), db.now_iso()),
    )


def delete_plan(plan_id: int) -> None:
    db.execute("UPDATE students SET plan_id = NULL WHERE plan_id = ?", (plan_id,))
    db.execute("DELETE FROM plans WHERE id = ?", (plan_id,))


# ---------- Students ----------

def student_from_row(r) -> Student:
    return Student(
        id=r["id"],
        full_name=r["full_name"],
        phone=r["phone"],
        email=r["email"],
        plan_id=r["plan_id"],
        due_day=int(r["due_day"] or DEFAULT_DUE_DAY),
        status=r["status"],
        belt=r["belt"],
        degrees=int(r["degrees"] or 0),
        created_at=utils.parse_timestamp(r["created_at"]),
    )


def fetch_students(search: str = "", status_filter: str = "All") -> list[Student]:
    sql = "SELECT * FROM students WHERE 1=1"
    params = []

    if search.strip():
        sql += " AND (full_name LIKE ? OR phone LIKE ?)"
        like = f"%{search.strip()}%"
        params.extend([like, like])

    if status_filter in ("active", "debt", "inactive"):
        sql += " AND status = ?"
        params.append(status_filter)

    sql += " ORDER BY full_name ASC"
    return [student_from_row(r) for r in db.fetch_all(sql, tuple(params))]


def recent_students(limit: int = 5) -> list[Student]:
    rows = db.fetch_all("SELECT * FROM students ORDER BY created_at DESC, id DESC LIMIT ?", (limit,))
    return [student_from_row(r) for r in rows]


def get_student(student_id: int) -> Student | None:
    r = db.fetch_one("SELECT * FROM students WHERE id = ?", (student_id,))
    return student_from_row(r) if r else None


def save_student(
    full_name: str,
    phone: str | None,
    email: str | None,
    plan_id: int | None,
    due_day: int,
    status: str = "active",
    belt: str | None = None,
    degrees: int = 0,
    student_id: int | None = None,
    created_at: datetime | None = None,
) -> int:
    values = (
        full_name.strip(),
        (phone or "").strip() or None,
        (email or "").strip() or None,
        plan_id,
        int(due_day),
        status,
        belt,
        int(degrees),
    )
    if student_id:
        db.execute(
            """
            UPDATE students SET full_name=?, phone=?, email=?, plan_id=?, due_day=?,
                status=?, belt=?, degrees=?
            WHERE id=?
            """,
            values + (student_id,),
        )
        return student_id
    return db.execute(
        """
        INSERT INTO students(full_name, phone, email, plan_id, due_day, status, belt, degrees, created_at)
        VALUES(?,?,?,?,?,?,?,?,?)
        """,
        values + ((created_at or datetime.now()).isoformat(timespec="seconds"),),
    )


def set_status(student_id: int, status: str) -> None:
    if status not in ("active", "debt", "inactive"):
        raise ValueError(f"Invalid student status: {status}")
    db.execute("UPDATE students SET status = ? WHERE id = ?", (status, student_id))


def delete_student(student_id: int) -> None:
    db.execute("DELETE FROM students WHERE id = ?", (student_id,))


def fetch_subscriptions() -> list[Subscription]:
    """Active students with a plan, each one a monthly charge of the plan price."""
    rows = db.fetch_all(
        """
        SELECT s.id, s.full_name, s.phone, s.due_day, s.created_at, p.name AS plan_name, p.price
        FROM students s
        JOIN plans p ON p.id = s.plan_id
        WHERE s.status = 'active'
        ORDER BY s.full_name ASC
        """
    )
    return [
        Subscription(
            student_id=r["id"],
            full_name=r["full_name"],
            phone=r["phone"],
            due_day=int(r["due_day"] or DEFAULT_DUE_DAY),
            amount=float(r["price"]),
            plan_name=r["plan_name"],
            since=utils.parse_timestamp(r["created_at"]).date(),
        )
        for r in rows
    ]


# ---------- Graduation ----------

def required_classes(belt: str | None) -> int:
    return WHITE_BELT_CLASSES if "branca" in (belt or "").lower() else COLORED_BELT_CLASSES


def graduation_status(student: Student, attended: int, since: date) -> GraduationStatus:
    required = required_classes(student.belt)
    if student.degrees >= DEGREES_PER_BELT:
        next_milestone = "Troca de Faixa"
    else:
        next_milestone = f"{student.degrees + 1}º Grau"
    return GraduationStatus(
        student=student,
        classes_attended=attended,
        since=since,
        required=required,
        eligible=attended >= required,
        next_milestone=next_milestone,
        progress=min(attended / required * 100, 100.0),
    )


def last_promotion_date(student: Student) -> date:
    r = db.fetch_one(
        "SELECT MAX(promotion_date) AS d FROM student_graduations WHERE student_id = ?",
        (student.id,),
    )
    if r and r["d"]:
        return utils.parse_iso(r["d"])
    return student.created_at.date()


def graduation_candidates() -> list[GraduationStatus]:
    """Active students with classes attended since their last promotion, most progressed first."""
    out = []
    for s in fetch_students(status_filter="active"):
        since = last_promotion_date(s)
        out.append(graduation_status(s, classes.attendance_count(s.id, since), since))
    return sorted(out, key=lambda g: g.progress, reverse=True)


def promote(student_id: int, belt: str, degrees: int, when: date | None = None) -> None:
    when = when or date.today()
    db.execute(
        "INSERT INTO student_graduations(student_id, belt, degrees, promotion_date) VALUES(?,?,?,?)",
        (student_id, belt, int(degrees), when.isoformat()),
    )
    db.execute("UPDATE students SET belt = ?, degrees = ? WHERE id = ?", (belt, int(degrees), student_id))
