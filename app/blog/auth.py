from __future__ import annotations

import uuid
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, current_app, g, request, session

from app.blog.db import db_session
from app.blog.models import User


def load_current_user() -> None:
    """
    Loads g.current_user from the server-side session.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    user_id = session.get("user_id")
    if not user_id or not session.get("logged_in"):
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if user is None:
        # Account was deleted while this session was alive.
        current_app.logger.info("Clearing session for missing user_id=%s", user_id)
        session.clear()
        return
    g.current_user = user


def establish_session(user: User) -> None:
    """Log `user` in on a fresh session id."""
    session.clear()
    session.regenerate()
    session.permanent = True
    session["user_id"] = user.id
    session["username"] = user.username
    session["logged_in"] = True
    g.current_user = user


def destroy_session() -> None:
    session.clear()
    g.current_user = None


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def with_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Only run the view for a logged-in user; 401 otherwise."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if getattr(g, "current_user", None) is None:
            abort(401, description="You must be logged in to do that.")
        return fn(*args, **kwargs)

    return wrapped
