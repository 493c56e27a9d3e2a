from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, session
from sqlalchemy.exc import IntegrityError

from app.blog.audit import record_event
from app.blog.auth import current_user, destroy_session, establish_session, with_auth
from app.blog.db import db_session
from app.blog.errors import ValidationFailed, json_error
from app.blog.modules.users.service import (
    check_password,
    create_user,
    delete_user,
    find_conflicts,
    get_user,
    get_user_by_email,
    list_users,
    normalize_email,
    update_user,
    user_detail_to_dict,
    user_to_dict,
    validate_user_payload,
)
from app.blog.utils import clean_str, request_payload

bp = Blueprint("users", __name__)

NOT_FOUND = "No user found with this id"


# GET /api/users
@bp.get("")
def users_list():
    s = db_session()
    return jsonify([user_to_dict(u) for u in list_users(s)])


# GET /api/users/1 -- with the user's posts, comments and upvoted posts
@bp.get("/<int:user_id>")
def user_detail(user_id: int):
    s = db_session()
    user = get_user(s, user_id)
    if not user:
        return json_error(NOT_FOUND, 404)
    return jsonify(user_detail_to_dict(user))


# POST /api/users -- register and log in
@bp.post("")
def users_create():
    s = db_session()
    payload = request_payload()

    errors = validate_user_payload(payload)
    if not errors:
        errors = find_conflicts(s, username=clean_str(payload, "username"), email=normalize_email(payload.get("email")))
    if errors:
        raise ValidationFailed(errors)

    try:
        user = create_user(s, payload)
        s.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration.
        s.rollback()
        raise ValidationFailed(["Username or email already registered."])

    establish_session(user)
    current_app.logger.info("Registered user_id=%s", user.id)
    return jsonify(user_to_dict(user))


@bp.post("/login")
def users_login():
    s = db_session()
    payload = request_payload()
    email = normalize_email(payload.get("email"))

    user = get_user_by_email(s, email) if email else None
    if not user:
        record_event(s, actor=None, action="auth.login_failed", entity_type="User", reason="Unknown email", metadata={"email": email})
        s.commit()
        return json_error("No user with that email address!", 400)

    if not check_password(user, payload.get("password")):
        record_event(s, actor=user, action="auth.login_failed", entity_type="User", entity_id=str(user.id), reason="Incorrect password")
        s.commit()
        return json_error("Incorrect password!", 400)

    establish_session(user)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return jsonify({"user": user_to_dict(user), "message": "You are now logged in!"})


@bp.post("/logout")
def users_logout():
    if not session.get("logged_in"):
        return "", 404

    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    destroy_session()
    return "", 204


@bp.put("/<int:user_id>")
@with_auth
def users_update(user_id: int):
    s = db_session()
    payload = request_payload()

    user = get_user(s, user_id)
    if not user:
        return json_error(NOT_FOUND, 404)

    errors = validate_user_payload(payload, partial=True)
    if not errors:
        errors = find_conflicts(
            s,
            username=clean_str(payload, "username") if "username" in payload else None,
            email=normalize_email(payload.get("email")) if "email" in payload else None,
            exclude_id=user.id,
        )
    if errors:
        raise ValidationFailed(errors)

    update_user(s, user, payload, current_user())
    s.commit()
    if user.id == current_user().id:
        session["username"] = user.username
    return jsonify(user_to_dict(user))


@bp.delete("/<int:user_id>")
@with_auth
def users_delete(user_id: int):
    s = db_session()
    user = get_user(s, user_id)
    if not user:
        return json_error(NOT_FOUND, 404)

    actor = current_user()
    self_delete = actor.id == user.id
    delete_user(s, user, actor)
    s.commit()
    if self_delete:
        destroy_session()
    return jsonify({"message": "User deleted.", "id": user_id})
