from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from werkzeug.security import check_password_hash, generate_password_hash

from app.blog.audit import record_event
from app.blog.models import User
from app.blog.utils import clean_str, isoformat, valid_id

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


MIN_PASSWORD_LENGTH = 4
MAX_USERNAME_LENGTH = 64
MAX_EMAIL_LENGTH = 320  # users.email column width
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

USER_FIELDS = ("username", "email", "password")


def normalize_email(raw: Any) -> str:
    return (str(raw) if raw is not None else "").strip().lower()


def validate_user_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """
    Validate user creation/update payload. Returns list of errors.
    With partial=True only the fields present in the payload are checked.
    """
    errors = []

    if not partial or "username" in payload:
        username = clean_str(payload, "username")
        if not username:
            errors.append("Username is required.")
        elif len(username) > MAX_USERNAME_LENGTH:
            errors.append(f"Username must be at most {MAX_USERNAME_LENGTH} characters.")

    if not partial or "email" in payload:
        email = normalize_email(payload.get("email"))
        if not email:
            errors.append("Email is required.")
        elif len(email) > MAX_EMAIL_LENGTH:
            errors.append(f"Email must be at most {MAX_EMAIL_LENGTH} characters.")
        elif not _EMAIL_RE.match(email):
            errors.append("Email must be a valid email address.")

    if not partial or "password" in payload:
        password = payload.get("password")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")

    if partial and not any(k in payload for k in USER_FIELDS):
        errors.append("Nothing to update.")
    return errors


def find_conflicts(s: "Session", *, username: str | None, email: str | None, exclude_id: int | None = None) -> list[str]:
    """Uniqueness checks for username/email (case-insensitive username)."""
    errors = []
    if username:
        q = select(User.id).where(func.lower(User.username) == username.lower())
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if s.execute(q).first():
            errors.append("Username already exists.")
    if email:
        q = select(User.id).where(User.email == email)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if s.execute(q).first():
            errors.append("Email already registered.")
    return errors


def list_users(s: "Session") -> list[User]:
    return list(s.scalars(select(User).order_by(User.id.asc())))


def get_user(s: "Session", user_id: int) -> User | None:
    if not valid_id(user_id):
        return None
    return s.get(User, user_id)


def get_user_by_email(s: "Session", email: str) -> User | None:
    return s.execute(select(User).where(User.email == normalize_email(email))).scalar_one_or_none()


def check_password(user: User, password: Any) -> bool:
    if not isinstance(password, str):
        return False
    return check_password_hash(user.password_hash, password)


def create_user(s: "Session", payload: dict) -> User:
    """Create a new user. Caller validates first."""
    user = User(
        username=clean_str(payload, "username"),
        email=normalize_email(payload.get("email")),
        password_hash=generate_password_hash(payload["password"]),
    )
    s.add(user)
    s.flush()

    record_event(
        s,
        actor=user,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"username": user.username},
    )
    return user


def update_user(s: "Session", user: User, payload: dict, actor: User) -> User:
    """Apply the fields present in payload; a new password is re-hashed."""
    changed = []
    if "username" in payload:
        username = clean_str(payload, "username")
        if username != user.username:
            user.username = username
            changed.append("username")
    if "email" in payload:
        email = normalize_email(payload.get("email"))
        if email != user.email:
            user.email = email
            changed.append("email")
    if "password" in payload:
        user.password_hash = generate_password_hash(payload["password"])
        changed.append("password")
    s.flush()

    record_event(
        s,
        actor=actor,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"fields": changed},
    )
    return user


def delete_user(s: "Session", user: User, actor: User) -> None:
    """Delete the user; posts, comments and votes go with it."""
    user_id = user.id
    email = user.email
    self_delete = actor.id == user_id
    s.delete(user)
    s.flush()

    record_event(
        s,
        actor=None if self_delete else actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user_id),
        metadata={"email": email, "self": self_delete},
    )


def user_to_dict(user: User) -> dict:
    """Public view of a user. Never includes the password hash."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "created_at": isoformat(user.created_at),
        "updated_at": isoformat(user.updated_at),
    }


def user_detail_to_dict(user: User) -> dict:
    data = user_to_dict(user)
    data["posts"] = [
        {
            "id": p.id,
            "title": p.title,
            "post_text": p.post_text,
            "created_at": isoformat(p.created_at),
        }
        for p in user.posts
    ]
    data["comments"] = [
        {
            "id": c.id,
            "comment_text": c.comment_text,
            "post_id": c.post_id,
            "user_id": c.user_id,
            "created_at": isoformat(c.created_at),
            "post": {"title": c.post.title},
        }
        for c in user.comments
    ]
    data["voted_posts"] = [{"id": v.post.id, "title": v.post.title} for v in user.votes]
    return data
