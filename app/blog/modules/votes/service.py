from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from app.blog.audit import record_event
from app.blog.modules.votes.models import Vote

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.blog.models import User
    from app.blog.modules.posts.models import Post


class AlreadyVoted(Exception):
    pass


def has_voted(s: "Session", post: "Post", user: "User") -> bool:
    q = select(Vote.id).where(Vote.post_id == post.id, Vote.user_id == user.id)
    return s.execute(q).first() is not None


def upvote(s: "Session", post: "Post", user: "User") -> Vote:
    """Record `user`'s upvote of `post`. Raises AlreadyVoted on a repeat."""
    if has_voted(s, post, user):
        raise AlreadyVoted()
    vote = Vote(user_id=user.id, post_id=post.id)
    post.votes.append(vote)
    s.flush()

    record_event(
        s,
        actor=user,
        action="post.upvote",
        entity_type="Post",
        entity_id=str(post.id),
    )
    return vote
