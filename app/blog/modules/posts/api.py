from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy.exc import IntegrityError

from app.blog.auth import current_user, with_auth
from app.blog.db import db_session
from app.blog.errors import ValidationFailed, json_error
from app.blog.modules.posts.service import (
    create_post,
    delete_post,
    get_post,
    list_posts,
    post_to_dict,
    update_post,
    validate_post_payload,
)
from app.blog.modules.votes.service import AlreadyVoted, upvote
from app.blog.utils import parse_id, request_payload

bp = Blueprint("posts", __name__)

NOT_FOUND = "No post found with this id"


@bp.get("")
def posts_list():
    s = db_session()
    return jsonify([post_to_dict(p) for p in list_posts(s)])


@bp.get("/<int:post_id>")
def post_detail(post_id: int):
    s = db_session()
    post = get_post(s, post_id)
    if not post:
        return json_error(NOT_FOUND, 404)
    return jsonify(post_to_dict(post))


@bp.post("")
@with_auth
def posts_create():
    s = db_session()
    payload = request_payload()
    errors = validate_post_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    post = create_post(s, payload, current_user())
    s.commit()
    return jsonify(post_to_dict(post))


# PUT /api/posts/upvote -- expects {post_id}; the voter is the session user
@bp.put("/upvote")
@with_auth
def posts_upvote():
    s = db_session()
    payload = request_payload()
    post_id = parse_id(payload.get("post_id"))
    if post_id is None:
        raise ValidationFailed(["post_id must be a positive integer."])

    post = get_post(s, post_id)
    if not post:
        return json_error(NOT_FOUND, 404)

    try:
        upvote(s, post, current_user())
        s.commit()
    except (AlreadyVoted, IntegrityError):
        s.rollback()
        return json_error("You have already upvoted this post.", 400)
    return jsonify(post_to_dict(post))


@bp.put("/<int:post_id>")
@with_auth
def posts_update(post_id: int):
    s = db_session()
    payload = request_payload()
    post = get_post(s, post_id)
    if not post:
        return json_error(NOT_FOUND, 404)

    errors = validate_post_payload(payload, partial=True)
    if errors:
        raise ValidationFailed(errors)

    update_post(s, post, payload, current_user())
    s.commit()
    return jsonify(post_to_dict(post))


@bp.delete("/<int:post_id>")
@with_auth
def posts_delete(post_id: int):
    s = db_session()
    post = get_post(s, post_id)
    if not post:
        return json_error(NOT_FOUND, 404)

    delete_post(s, post, current_user())
    s.commit()
    return jsonify({"message": "Post deleted.", "id": post_id})
