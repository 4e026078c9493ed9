"""
classes.py
Weekly class schedule, class sessions and attendance sheets.
"""

from __future__ import annotations

from datetime import date

import db
from models import WEEKDAYS, AttendanceRecord


def _days_to_text(days: list[str]) -> str:
    unknown = [d for d in days if d not in WEEKDAYS]
    if unknown:
        raise ValueError(f"Unknown weekday code(s): {', '.join(unknown)}")
    return ",".join(d for d in WEEKDAYS if d in days)


def days_from_text(text: str | None) -> list[str]:
    return [d for d in (text or "").split(",") if d]


def fetch_classes() -> list:
    return db.fetch_all(
        """
        SELECT c.*, p.full_name AS professor_name
        FROM classes c
        LEFT JOIN professors p ON p.id = c.professor_id
        ORDER BY c.schedule_time ASC, c.name ASC
        """
    )


def save_class(
    name: str,
    schedule_time: str,
    days_of_week: list[str],
    professor_id: int | None = None,
    class_id: int | None = None,
) -> int:
    days = _days_to_text(days_of_week)
    if class_id:
        db.execute(
            "UPDATE classes SET name=?, schedule_time=?, professor_id=?, days_of_week=? WHERE id=?",
            (name.strip(), schedule_time, professor_id, days, class_id),
        )
        return class_id
    return db.execute(
        "INSERT INTO classes(name, schedule_time, professor_id, days_of_week, created_at) VALUES(?,?,?,?,?)",
        (name.strip(), schedule_time, professor_id, days, db.now_iso()),
    )


def delete_class(class_id: int) -> None:
    db.execute("DELETE FROM attendance WHERE class_id = ?", (class_id,))
    db.execute("DELETE FROM class_sessions WHERE class_id = ?", (class_id,))
    db.execute("DELETE FROM classes WHERE id = ?", (class_id,))


def todays_classes(today: date | None = None) -> list:
    code = WEEKDAYS[(today or date.today()).weekday()]
    return [c for c in fetch_classes() if code in days_from_text(c["days_of_week"])]


# ---------- Attendance ----------

def save_attendance(class_id: int, day: date, present_ids: set[int], roster_ids: list[int]) -> int:
    """
    Store the attendance sheet of one class on one day: every student on the
    roster gets a row, present or not. Re-saving a sheet overwrites it.
    Returns how many were present.
    """
    now = db.now_iso()
    db.executemany(
        """
        INSERT INTO attendance(student_id, class_id, date, present, created_at) VALUES(?,?,?,?,?)
        ON CONFLICT(student_id, class_id, date) DO UPDATE SET present=excluded.present
        """,
        [(sid, class_id, day.isoformat(), int(sid in present_ids), now) for sid in roster_ids],
    )
    return sum(1 for sid in roster_ids if sid in present_ids)


def fetch_attendance(class_id: int, day: date) -> list[AttendanceRecord]:
    rows = db.fetch_all(
        "SELECT * FROM attendance WHERE class_id = ? AND date = ?",
        (class_id, day.isoformat()),
    )
    return [
        AttendanceRecord(student_id=r["student_id"], class_id=r["class_id"], date=day, present=bool(r["present"]))
        for r in rows
    ]


def attendance_count(student_id: int, since: date) -> int:
    r = db.fetch_one(
        "SELECT COUNT(*) AS c FROM attendance WHERE student_id = ? AND present = 1 AND date >= ?",
        (student_id, since.isoformat()),
    )
    return int(r["c"])


# ---------- Sessions ----------

def confirm_session(class_id: int, day: date, professor_id: int | None = None, notes: str | None = None) -> int:
    """Mark a class as given on a day (counts toward the professor's payroll)."""
    if professor_id is None:
        r = db.fetch_one("SELECT professor_id FROM classes WHERE id = ?", (class_id,))
        if not r:
            raise LookupError(f"Class {class_id} not found")
        professor_id = r["professor_id"]
    return db.execute(
        """
        INSERT INTO class_sessions(class_id, date, professor_id, status, notes, created_at)
        VALUES(?,?,?,'completed',?,?)
        ON CONFLICT(class_id, date) DO UPDATE SET professor_id=excluded.professor_id,
            status='completed', notes=excluded.notes
        """,
        (class_id, day.isoformat(), professor_id, notes, db.now_iso()),
    )


def fetch_sessions(start: date, end: date) -> list:
    return db.fetch_all(
        """
        SELECT * FROM class_sessions
        WHERE date >= ? AND date <= ? AND status = 'completed'
        ORDER BY date ASC
        """,
        (start.isoformat(), end.isoformat()),
    )
