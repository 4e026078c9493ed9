"""
auth.py
Operator accounts (bcrypt hashing, verify, login, change password, user admin).
"""

from __future__ import annotations

import bcrypt
import db
from models import OPERATOR_ROLES

MIN_PASSWORD_LENGTH = 6


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    """
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(_to_bcrypt_secret(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def get_operator(username: str):
    return db.fetch_one("SELECT * FROM operators WHERE username = ?", (username,))


def login(username: str, password: str) -> bool:
    operator = get_operator(username)
    if not operator:
        return False
    return verify_password(password, operator["password_hash"])


def validate_new_password(new1: str, new2: str) -> list[str]:
    errors = []
    if len(new1) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if new1 != new2:
        errors.append("Passwords do not match.")
    return errors


def change_password(username: str, new_password: str) -> None:
    db.execute(
        "UPDATE operators SET password_hash = ? WHERE username = ?",
        (hash_password(new_password), username),
    )
    db.clear_force_password_change()


def add_operator(username: str, password: str, role: str = "secretary", full_name: str | None = None) -> int:
    if role not in OPERATOR_ROLES:
        raise ValueError(f"Invalid role: {role}")
    if get_operator(username.strip()):
        raise ValueError(f"Username already taken: {username}")
    return db.execute(
        "INSERT INTO operators(username, full_name, role, password_hash, created_at) VALUES(?,?,?,?,?)",
        (username.strip(), full_name, role, hash_password(password), db.now_iso()),
    )


def fetch_operators() -> list:
    return db.fetch_all("SELECT id, username, full_name, role, created_at FROM operators ORDER BY username")


def delete_operator(username: str) -> None:
    remaining = db.fetch_one("SELECT COUNT(*) AS c FROM operators WHERE role = 'admin' AND username != ?", (username,))
    operator = get_operator(username)
    if operator and operator["role"] == "admin" and remaining["c"] == 0:
        raise ValueError("Cannot remove the last admin.")
    db.execute("DELETE FROM operators WHERE username = ?", (username,))
