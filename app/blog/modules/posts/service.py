from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from app.blog.audit import record_event
from app.blog.modules.posts.models import Post
from app.blog.utils import clean_str, isoformat, valid_id

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.blog.models import User


MAX_TITLE_LENGTH = 255

POST_FIELDS = ("title", "post_text")


def validate_post_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate post creation/update payload. Returns list of errors."""
    errors = []
    if not partial or "title" in payload:
        title = clean_str(payload, "title")
        if not title:
            errors.append("Title is required.")
        elif len(title) > MAX_TITLE_LENGTH:
            errors.append(f"Title must be at most {MAX_TITLE_LENGTH} characters.")
    if not partial or "post_text" in payload:
        if not clean_str(payload, "post_text"):
            errors.append("Post text must be at least 1 character.")
    if partial and not any(k in payload for k in POST_FIELDS):
        errors.append("Nothing to update.")
    return errors


def list_posts(s: "Session") -> list[Post]:
    return list(s.scalars(select(Post).order_by(Post.created_at.desc(), Post.id.desc())))


def get_post(s: "Session", post_id: int) -> Post | None:
    if not valid_id(post_id):
        return None
    return s.get(Post, post_id)


def create_post(s: "Session", payload: dict, user: "User") -> Post:
    """Create a post owned by `user`."""
    post = Post(
        title=clean_str(payload, "title"),
        post_text=clean_str(payload, "post_text"),
        user_id=user.id,
    )
    s.add(post)
    s.flush()

    record_event(
        s,
        actor=user,
        action="post.create",
        entity_type="Post",
        entity_id=str(post.id),
        metadata={"title": post.title},
    )
    return post


def update_post(s: "Session", post: Post, payload: dict, user: "User") -> Post:
    changed = []
    for field in POST_FIELDS:
        if field in payload:
            value = clean_str(payload, field)
            if value != getattr(post, field):
                setattr(post, field, value)
                changed.append(field)
    s.flush()

    record_event(
        s,
        actor=user,
        action="post.update",
        entity_type="Post",
        entity_id=str(post.id),
        metadata={"fields": changed},
    )
    return post


def delete_post(s: "Session", post: Post, user: "User") -> None:
    post_id = post.id
    title = post.title
    s.delete(post)
    s.flush()

    record_event(
        s,
        actor=user,
        action="post.delete",
        entity_type="Post",
        entity_id=str(post_id),
        metadata={"title": title},
    )


def post_to_dict(post: Post) -> dict:
    return {
        "id": post.id,
        "title": post.title,
        "post_text": post.post_text,
        "user_id": post.user_id,
        "created_at": isoformat(post.created_at),
        "updated_at": isoformat(post.updated_at),
        "vote_count": post.vote_count,
        "user": {"username": post.user.username},
        "comments": [
            {
                "id": c.id,
                "comment_text": c.comment_text,
                "post_id": c.post_id,
                "user_id": c.user_id,
                "created_at": isoformat(c.created_at),
                "user": {"username": c.user.username},
            }
            for c in post.comments
        ],
    }
