"""Data types shared by the storage back ends and the resolver."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Optional


@dataclass
class PageInfo:
    """Pagination state of a comment connection."""

    has_next_page: bool = False
    end_cursor: Optional[str] = None


@dataclass
class Comment:
    """A comment on a post, optionally replying to another comment."""

    id: str = ""
    post_id: str = ""
    parent_id: Optional[str] = None
    content: str = ""
    created_at: Optional[datetime] = None


@dataclass
class CommentEdge:
    """A comment together with the cursor that points at it."""

    cursor: str
    node: Comment


@dataclass
class CommentConnection:
    """One page of comments in connection form."""

    edges: List[CommentEdge] = field(default_factory=list)
    page_info: Optional[PageInfo] = None


@dataclass
class Post:
    """A post on the board."""

    id: str = ""
    title: str = ""
    content: str = ""
    comments_allowed: bool = False
    created_at: Optional[datetime] = None
    comments: Optional[CommentConnection] = None


@dataclass(frozen=True)
class CommentNotify:
    """Notification sent to subscribers when a comment is added."""

    post_id: str
    id: str
    content: str


@dataclass
class CommentPage:
    """A page of comments returned by a storage back end."""

    comments: List[Comment] = field(default_factory=list)
    has_next_page: bool = False
    end_cursor: str = ""

    def __len__(self) -> int:
        return len(self.comments)

    def __iter__(self) -> Iterator[Comment]:
        return iter(self.comments)


class StorageError(Exception):
    """Base class for errors reported by a storage back end."""


class PostNotFoundError(StorageError):
    """The requested post does not exist."""


class CommentNotFoundError(StorageError):
    """The requested comment does not exist."""


class CommentFromAnotherPostError(StorageError):
    """The comment exists but belongs to a different post."""


class InvalidCursorError(StorageError):
    """The pagination cursor does not name a comment of the post."""