"""Query, mutation and subscription operations of the board."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, List, Optional, Protocol, Tuple

from postboard.keyed_lock import KeyedLock
from postboard.models import (
    Comment,
    CommentConnection,
    CommentEdge,
    CommentFromAnotherPostError,
    CommentNotFoundError,
    CommentNotify,
    CommentPage,
    PageInfo,
    Post,
    PostNotFoundError,
)

MAX_COMMENT_BYTES = 2000


class ResolverError(Exception):
    """A request to the resolver could not be carried out."""


class _PostStore(Protocol):
    def save_post(self, post: Post) -> Tuple[str, object]: ...

    def get_post(self, post_id: str) -> Post: ...

    def get_all_posts(self) -> List[Post]: ...


class _CommentStore(Protocol):
    def save_comment(self, comment: Comment) -> Tuple[str, object]: ...

    def get_comments(
        self, first: Optional[int], after: Optional[str], post_id: str
    ) -> CommentPage: ...

    def check_comment_exists(self, comment_id: str, post_id: str) -> None: ...


_CLOSED = object()


class _Subscription:
    """Stream of comment notifications for one post; close it to stop."""

    def __init__(
        self,
        post_id: str,
        loop: asyncio.AbstractEventLoop,
        unsubscribe: Callable[["_Subscription"], None],
    ) -> None:
        self.post_id = post_id
        self._loop = loop
        self._unsubscribe = unsubscribe
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def _deliver(self, item: object) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # The subscriber's event loop is gone; nobody is listening any more.
            pass

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop receiving; notifications already queued are still handed out."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe(self)
        self._deliver(_CLOSED)

    def __aiter__(self) -> "_Subscription":
        return self

    async def __anext__(self) -> CommentNotify:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "_Subscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class Resolver:
    """Validates requests and runs them against the post and comment stores."""

    def __init__(
        self,
        posts: _PostStore,
        comments: _CommentStore,
        *,
        storage: object = None,
        locks: Optional[KeyedLock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.posts = posts
        self.comments = comments
        self.storage = storage
        self.locks = locks if locks is not None else KeyedLock()
        self.log = logger if logger is not None else logging.getLogger(__name__)
        self._subscribers: List[_Subscription] = []
        self._subscribers_guard = threading.Lock()

    def create_post(self, title: str, content: str, comments_allowed: bool) -> Post:
        if not title.strip():
            self.log.debug("user tries create post with empty title")
            raise ResolverError("title cannot be empty")
        if not content.strip():
            self.log.debug("user tries create post with empty content")
            raise ResolverError("content cannot be empty")

        post = Post(title=title, content=content, comments_allowed=comments_allowed)
        try:
            post.id, post.created_at = self.posts.save_post(post)
        except Exception as exc:
            self.log.error("failed to save post", extra={"error": str(exc)})
            raise ResolverError(f"failed to save post: {exc}") from exc

        self.log.info("post successfully saved", extra={"post_id": post.id})
        return post

    def create_comment(
        self, parent_id: Optional[str], post_id: str, content: str
    ) -> Comment:
        if len(content.encode("utf-8")) > MAX_COMMENT_BYTES:
            self.log.error("text must have 2000 chars or less")
            raise ResolverError("text must have 2000 chars or less")
        if not content.strip():
            raise ResolverError("content cannot be empty")

        try:
            post = self.posts.get_post(post_id)
        except PostNotFoundError as exc:
            self.log.info(
                "user trying to create comment to not existing post",
                extra={"error": str(exc)},
            )
            raise ResolverError(
                f"trying to create comment to not existing post: {exc}"
            ) from exc
        except Exception as exc:
            self.log.error("failed to get post for comment", extra={"error": str(exc)})
            raise ResolverError(f"failed to get post for comment: {exc}") from exc

        with self.locks.get(post_id).read_locked():
            if not post.comments_allowed:
                self.log.info("user trying to create comment to post that not allowed comments")
                raise ResolverError("this post not allow comments")

            if parent_id is not None:
                self._check_parent(parent_id, post_id)

            comment = Comment(post_id=post_id, parent_id=parent_id, content=content)
            try:
                comment.id, comment.created_at = self.comments.save_comment(comment)
            except Exception as exc:
                self.log.error("failed to save comment", extra={"error": str(exc)})
                raise ResolverError(f"failed to save comment: {exc}") from exc

        self._publish(CommentNotify(post_id=post_id, id=comment.id, content=comment.content))
        self.log.info(
            "comment successfully saved",
            extra={"comment_id": comment.id, "post_id": post_id},
        )
        return comment

    def _check_parent(self, parent_id: str, post_id: str) -> None:
        try:
            self.comments.check_comment_exists(parent_id, post_id)
        except CommentNotFoundError as exc:
            self.log.info("parent comment not found", extra={"comment_id": parent_id})
            raise ResolverError(f"parent comment not found: {exc}") from exc
        except CommentFromAnotherPostError as exc:
            self.log.info("parent comment from another post", extra={"comment_id": parent_id})
            raise ResolverError(f"parent comment from another post: {exc}") from exc
        except Exception as exc:
            self.log.info(
                "failed to find parent comment",
                extra={"comment_id": parent_id, "error": str(exc)},
            )
            raise ResolverError(f"failed to find parent comment: {exc}") from exc

    def get_all_posts(self) -> List[Post]:
        try:
            posts = self.posts.get_all_posts()
        except Exception as exc:
            self.log.error("failed to get posts", extra={"error": str(exc)})
            raise ResolverError(f"failed to get posts: {exc}") from exc
        self.log.info("posts was get successfully")
        return list(posts)

    def get_post(self, post_id: str, first: Optional[int], after: Optional[str]) -> Post:
        """Return a post with one page of its comments attached."""
        if first is None:
            raise ResolverError("parameter `first` is missing")
        if first < 0:
            raise ResolverError("`first` cannot be less than 0")

        try:
            post = self.posts.get_post(post_id)
        except Exception as exc:
            self.log.error("failed to get post", extra={"error": str(exc)})
            raise ResolverError(f"failed to get post: {exc}") from exc

        with self.locks.get(post_id).read_locked():
            if after is not None:
                try:
                    self.comments.check_comment_exists(after, post_id)
                except Exception as exc:
                    self.log.info(
                        "failed to find cursor",
                        extra={"cursor": after, "error": str(exc)},
                    )
                    raise ResolverError(f"failed to find cursor: {exc}") from exc

            try:
                page = self.comments.get_comments(first, after, post_id)
            except Exception as exc:
                self.log.error(
                    "failed to get comments",
                    extra={"post_id": post_id, "error": str(exc)},
                )
                raise ResolverError(f"failed to get comments: {exc}") from exc

        edges = [
            CommentEdge(
                cursor=c.id,
                node=Comment(
                    id=c.id,
                    post_id=c.post_id,
                    parent_id=c.parent_id,
                    content=c.content,
                    created_at=c.created_at,
                ),
            )
            for c in page
        ]
        post.comments = CommentConnection(
            edges=edges,
            page_info=PageInfo(has_next_page=page.has_next_page, end_cursor=page.end_cursor),
        )
        self.log.info("post was get successfully", extra={"post_id": post_id})
        return post

    def comments_updated(self, post_id: str) -> _Subscription:
        """Subscribe to new comments on a post; must be called inside an event loop."""
        loop = asyncio.get_running_loop()
        subscription = _Subscription(post_id, loop, self._unsubscribe)
        with self._subscribers_guard:
            self._subscribers.append(subscription)
        self.log.info("new subscription", extra={"post_id": post_id})
        return subscription

    def _unsubscribe(self, subscription: _Subscription) -> None:
        with self._subscribers_guard:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)
        self.log.info("subscription closed", extra={"post_id": subscription.post_id})

    def _publish(self, notify: CommentNotify) -> None:
        with self._subscribers_guard:
            targets = [s for s in self._subscribers if s.post_id == notify.post_id]
        for subscription in targets:
            subscription._deliver(notify)