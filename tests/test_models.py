from datetime import datetime, timezone

import pytest

from postboard.models import (
    Comment,
    CommentConnection,
    CommentEdge,
    CommentFromAnotherPostError,
    CommentNotFoundError,
    CommentNotify,
    CommentPage,
    InvalidCursorError,
    PageInfo,
    Post,
    PostNotFoundError,
    StorageError,
)


def test_comment_page_len_counts_comments():
    page = CommentPage(comments=[Comment(id="a"), Comment(id="b")], has_next_page=True, end_cursor="b")
    assert len(page) == 2
    assert [c.id for c in page] == ["a", "b"]


def test_empty_comment_page_defaults():
    page = CommentPage()
    assert len(page) == 0
    assert page.has_next_page is False
    assert page.end_cursor == ""


def test_post_defaults():
    post = Post(title="t", content="c")
    assert post.comments is None
    assert post.comments_allowed is False
    assert post.id == ""


def test_comment_parent_defaults_to_none():
    comment = Comment(post_id="p", content="x")
    assert comment.parent_id is None
    assert comment.created_at is None


def test_connection_holds_edges():
    when = datetime.now(timezone.utc)
    node = Comment(id="c1", post_id="p", content="hi", created_at=when)
    conn = CommentConnection(
        edges=[CommentEdge(cursor=node.id, node=node)],
        page_info=PageInfo(has_next_page=False, end_cursor="c1"),
    )
    assert conn.edges[0].node is node
    assert conn.edges[0].cursor == conn.page_info.end_cursor


def test_comment_notify_is_immutable_and_comparable():
    note = CommentNotify(post_id="p", id="c", content="x")
    assert note == CommentNotify(post_id="p", id="c", content="x")
    with pytest.raises(AttributeError):
        note.content = "y"


@pytest.mark.parametrize(
    "error_class",
    [PostNotFoundError, CommentNotFoundError, CommentFromAnotherPostError, InvalidCursorError],
)
def test_errors_share_storage_base(error_class):
    error = error_class("boom")
    assert str(error) == "boom"
    assert issubclass(error_class, StorageError) is True
    caught = []
    try:
        raise error
    except StorageError as exc:
        caught.append(exc)
    assert caught == [error]