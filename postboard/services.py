"""Post and comment operations backed by a relational database."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy import and_, insert, or_, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from postboard.database import Database, comments_table, posts_table
from postboard.models import (
    Comment,
    CommentFromAnotherPostError,
    CommentNotFoundError,
    CommentPage,
    InvalidCursorError,
    Post,
    PostNotFoundError,
    StorageError,
)
from postboard.retry import retry_call

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _post_from_row(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        content=row.content,
        comments_allowed=bool(row.comments_allowed),
        created_at=_aware(row.created_at),
    )


def _comment_from_row(row) -> Comment:
    return Comment(
        id=row.id,
        post_id=row.post_id,
        parent_id=row.parent_id,
        content=row.content,
        created_at=_aware(row.created_at),
    )


class _Service:
    def __init__(
        self,
        db: Database,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._db = db
        self._sleep = sleep
        self._clock = clock

    def _retry(self, operation: Callable[[Connection], T]) -> T:
        return retry_call(self._db.run_in_transaction, operation, self._sleep)


class PostService(_Service):
    """Stores and reads posts."""

    def save_post(self, post: Post) -> Tuple[str, datetime]:
        """Insert a copy of the post under a fresh id; return the id and time."""
        post_id = str(uuid.uuid4())
        created_at = self._clock()

        def operation(conn: Connection) -> None:
            try:
                conn.execute(
                    insert(posts_table).values(
                        id=post_id,
                        title=post.title,
                        content=post.content,
                        comments_allowed=post.comments_allowed,
                        created_at=created_at,
                    )
                )
            except SQLAlchemyError as exc:
                raise StorageError(f"failed to insert post: {exc}") from exc

        self._retry(operation)
        return post_id, created_at

    def get_post(self, post_id: str) -> Post:
        def operation(conn: Connection) -> Post:
            row = conn.execute(
                select(posts_table).where(posts_table.c.id == post_id)
            ).first()
            if row is None:
                raise PostNotFoundError("post not found")
            return _post_from_row(row)

        return self._retry(operation)

    def get_all_posts(self) -> List[Post]:
        """Return every post, oldest first."""

        def operation(conn: Connection) -> List[Post]:
            rows = conn.execute(
                select(posts_table).order_by(
                    posts_table.c.created_at, posts_table.c.id
                )
            )
            return [_post_from_row(row) for row in rows]

        return self._retry(operation)


class CommentService(_Service):
    """Stores and reads comments."""

    def save_comment(self, comment: Comment) -> Tuple[str, datetime]:
        """Insert a copy of the comment under a fresh id; return the id and time."""
        comment_id = str(uuid.uuid4())
        created_at = self._clock()

        def operation(conn: Connection) -> None:
            try:
                conn.execute(
                    insert(comments_table).values(
                        id=comment_id,
                        post_id=comment.post_id,
                        parent_id=comment.parent_id,
                        content=comment.content,
                        created_at=created_at,
                    )
                )
            except SQLAlchemyError as exc:
                raise StorageError(f"failed to insert comment: {exc}") from exc

        self._retry(operation)
        return comment_id, created_at

    def get_comments(
        self, first: Optional[int], after: Optional[str], post_id: str
    ) -> CommentPage:
        """Return up to ``first`` comments of a post, oldest first, after a cursor."""
        if first is None:
            raise ValueError("parameter `first` is missing")
        if first < 0:
            raise ValueError("`first` cannot be less than 0")
        if first == 0:
            return CommentPage()

        c = comments_table.c

        def operation(conn: Connection) -> List[Comment]:
            query = (
                select(comments_table)
                .where(c.post_id == post_id)
                .order_by(c.created_at, c.id)
                .limit(first + 1)
            )
            if after:
                cursor = conn.execute(
                    select(c.created_at, c.id).where(c.id == after)
                ).first()
                if cursor is None:
                    raise InvalidCursorError("invalid cursor value: no rows in result set")
                query = query.where(
                    or_(
                        c.created_at > cursor.created_at,
                        and_(c.created_at == cursor.created_at, c.id > cursor.id),
                    )
                )
            return [_comment_from_row(row) for row in conn.execute(query)]

        comments = self._retry(operation)
        has_next_page = len(comments) == first + 1
        if has_next_page:
            comments = comments[:-1]
        return CommentPage(
            comments=comments,
            has_next_page=has_next_page,
            end_cursor=comments[-1].id if comments else "",
        )

    def check_comment_exists(self, comment_id: str, post_id: str) -> None:
        """Raise unless the comment exists and belongs to the post."""

        def operation(conn: Connection) -> None:
            row = conn.execute(
                select(comments_table.c.post_id).where(comments_table.c.id == comment_id)
            ).first()
            if row is None:
                raise CommentNotFoundError("comment not found")
            if row.post_id != post_id:
                raise CommentFromAnotherPostError(f"comment from post - {row.post_id}")

        self._retry(operation)