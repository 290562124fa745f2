"""Storage back end that keeps posts and comments in process memory."""

from __future__ import annotations

import dataclasses
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from postboard.keyed_lock import RWLock
from postboard.models import (
    Comment,
    CommentFromAnotherPostError,
    CommentNotFoundError,
    CommentPage,
    InvalidCursorError,
    Post,
    PostNotFoundError,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStorage:
    """Holds posts and comments behind one shared reader-writer lock."""

    def __init__(self) -> None:
        self._posts: Dict[str, Post] = {}
        self._comments: Dict[str, Comment] = {}
        self._lock = RWLock()

    def close(self) -> None:
        """Nothing to release; present so every back end can be closed alike."""

    def post_storage(self) -> "PostStorage":
        return PostStorage(self._posts, self._lock)

    def comment_storage(self) -> "CommentStorage":
        return CommentStorage(self._comments, self._lock)


class PostStorage:
    """Post operations over the shared in-memory tables."""

    def __init__(self, posts: Dict[str, Post], lock: RWLock) -> None:
        self._posts = posts
        self._lock = lock

    def save_post(self, post: Post) -> Tuple[str, datetime]:
        """Store a copy of the post under a fresh id; return the id and time."""
        stored = Post(
            id=str(uuid.uuid4()),
            title=post.title,
            content=post.content,
            comments=post.comments,
            comments_allowed=post.comments_allowed,
            created_at=_now(),
        )
        with self._lock.write_locked():
            self._posts[stored.id] = stored
        return stored.id, stored.created_at

    def get_post(self, post_id: str) -> Post:
        with self._lock.read_locked():
            post = self._posts.get(post_id)
            if post is None:
                raise PostNotFoundError(f"post not found by id: {post_id}")
            return dataclasses.replace(post)

    def get_all_posts(self) -> List[Post]:
        """Return every post, oldest first."""
        with self._lock.read_locked():
            posts = [dataclasses.replace(p) for p in self._posts.values()]
        return sorted(posts, key=lambda p: p.created_at)


class CommentStorage:
    """Comment operations over the shared in-memory tables."""

    def __init__(self, comments: Dict[str, Comment], lock: RWLock) -> None:
        self._comments = comments
        self._lock = lock

    def save_comment(self, comment: Comment) -> Tuple[str, datetime]:
        """Store a copy of the comment under a fresh id; return the id and time."""
        stored = Comment(
            id=str(uuid.uuid4()),
            post_id=comment.post_id,
            parent_id=comment.parent_id,
            content=comment.content,
            created_at=_now(),
        )
        with self._lock.write_locked():
            self._comments[stored.id] = stored
        return stored.id, stored.created_at

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

        with self._lock.read_locked():
            comments = sorted(
                (dataclasses.replace(c) for c in self._comments.values() if c.post_id == post_id),
                key=lambda c: c.created_at,
            )

        start = 0
        if after:
            start = next(
                (pos + 1 for pos, c in enumerate(comments) if c.id == after),
                None,
            )
            if start is None:
                raise InvalidCursorError("invalid cursor value")

        end = min(start + first, len(comments))
        page = comments[start:end]
        return CommentPage(
            comments=page,
            has_next_page=end < len(comments),
            end_cursor=page[-1].id if page else "",
        )

    def check_comment_exists(self, comment_id: str, post_id: str) -> None:
        """Raise unless the comment exists and belongs to the post."""
        with self._lock.read_locked():
            comment = self._comments.get(comment_id)
        if comment is None:
            raise CommentNotFoundError("comment not found")
        if comment.post_id != post_id:
            raise CommentFromAnotherPostError(f"comment from post - {comment.post_id}")