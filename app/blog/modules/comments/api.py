from __future__ import annotations

from flask import Blueprint, jsonify

from app.blog.auth import current_user, with_auth
from app.blog.db import db_session
from app.blog.errors import ValidationFailed, json_error
from app.blog.modules.comments.service import (
    comment_to_dict,
    create_comment,
    delete_comment,
    get_comment,
    list_comments,
    validate_comment_payload,
)
from app.blog.modules.posts.service import get_post
from app.blog.utils import clean_str, parse_id, request_payload

bp = Blueprint("comments", __name__)


@bp.get("")
def comments_list():
    s = db_session()
    return jsonify([comment_to_dict(c) for c in list_comments(s)])


@bp.post("")
@with_auth
def comments_create():
    s = db_session()
    payload = request_payload()
    errors = validate_comment_payload(payload)
    if errors:
        raise ValidationFailed(errors)

    post = get_post(s, parse_id(payload["post_id"]))
    if not post:
        return json_error("No post found with this id", 404)

    comment = create_comment(s, post, clean_str(payload, "comment_text"), current_user())
    s.commit()
    return jsonify(comment_to_dict(comment))


@bp.delete("/<int:comment_id>")
@with_auth
def comments_delete(comment_id: int):
    s = db_session()
    comment = get_comment(s, comment_id)
    if not comment:
        return json_error("No comment found with this id", 404)

    delete_comment(s, comment, current_user())
    s.commit()
    return jsonify({"message": "Comment deleted.", "id": comment_id})
