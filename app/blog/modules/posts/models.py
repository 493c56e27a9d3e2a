from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.blog.models import Base
from app.blog.utils import utcnow

if TYPE_CHECKING:
    from app.blog.models import User
    from app.blog.modules.comments.models import Comment
    from app.blog.modules.votes.models import Vote


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (
        Index("idx_posts_user_id", "user_id"),
        Index("idx_posts_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    post_text: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)

    user: Mapped["User"] = relationship("User", back_populates="posts", lazy="selectin")
    comments: Mapped[list["Comment"]] = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="Comment.created_at",
    )
    votes: Mapped[list["Vote"]] = relationship(
        "Vote",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def vote_count(self) -> int:
        return len(self.votes)

    @validates("post_text")
    def _validate_post_text(self, _key: str, value: str) -> str:
        # Post must be at least one character long.
        if not value:
            raise ValueError("Post text must be at least 1 character.")
        return value
