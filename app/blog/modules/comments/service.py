from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from app.blog.audit import record_event
from app.blog.modules.comments.models import Comment
from app.blog.utils import clean_str, isoformat, parse_id, valid_id

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.blog.models import User
    from app.blog.modules.posts.models import Post


def validate_comment_payload(payload: dict) -> list[str]:
    errors = []
    if not clean_str(payload, "comment_text"):
        errors.append("Comment text must be at least 1 character.")
    post_id = payload.get("post_id")
    if post_id is None or str(post_id).strip() == "":
        errors.append("post_id is required.")
    elif parse_id(post_id) is None:
        errors.append("post_id must be a positive integer.")
    return errors


def list_comments(s: "Session") -> list[Comment]:
    return list(s.scalars(select(Comment).order_by(Comment.created_at.asc(), Comment.id.asc())))


def get_comment(s: "Session", comment_id: int) -> Comment | None:
    if not valid_id(comment_id):
        return None
    return s.get(Comment, comment_id)


def create_comment(s: "Session", post: "Post", comment_text: str, user: "User") -> Comment:
    comment = Comment(comment_text=comment_text.strip(), post_id=post.id, user_id=user.id)
    s.add(comment)
    s.flush()

    record_event(
        s,
        actor=user,
        action="comment.create",
        entity_type="Comment",
        entity_id=str(comment.id),
        metadata={"post_id": post.id},
    )
    return comment


def delete_comment(s: "Session", comment: Comment, user: "User") -> None:
    comment_id = comment.id
    post_id = comment.post_id
    s.delete(comment)
    s.flush()

    record_event(
        s,
        actor=user,
        action="comment.delete",
        entity_type="Comment",
        entity_id=str(comment_id),
        metadata={"post_id": post_id},
    )


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "comment_text": comment.comment_text,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "created_at": isoformat(comment.created_at),
        "user": {"username": comment.user.username},
    }
