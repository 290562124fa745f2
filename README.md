# postboard

A small message-board backend library: posts, threaded comments, cursor-based
comment pagination and live notifications when a comment is added to a post.
Data is kept either in process memory or in a SQL database through SQLAlchemy.

## The resolver

`postboard.resolver.Resolver` validates requests and runs them against a post
store and a comment store. Every failure is raised as `ResolverError`, whose
message says what went wrong.

- `create_post(title, content, comments_allowed)` – title and content must not
  be blank. Returns the stored `Post` with its new `id` and `created_at`.
- `create_comment(parent_id, post_id, content)` – content must not be blank
  and may be at most 2000 bytes once encoded as UTF-8. The post must exist and
  allow comments; a `parent_id`, if given, must name a comment of the same
  post. Subscribers of the post are notified.
- `get_all_posts()` – every post, oldest first.
- `get_post(post_id, first, after)` – the post with one page of its comments
  in `post.comments`, a `CommentConnection` of `CommentEdge`s and a `PageInfo`
  (`has_next_page`, `end_cursor`). `first` is required and must not be
  negative; `after`, if given, must be the id of a comment of that post.
- `comments_updated(post_id)` – must be called inside a running event loop.
  Returns a subscription that yields `CommentNotify(post_id, id, content)` for
  each comment added to the post. Iterate it with `async for`; stop it with
  `close()` or by using it as an `async with` block.

```python
import asyncio
from postboard.bootstrap import build_resolver

resolver = build_resolver("in-memory")
post = resolver.create_post("Hello", "First post", True)

async def watch():
    async with resolver.comments_updated(post.id) as updates:
        resolver.create_comment(None, post.id, "Nice!")
        async for note in updates:
            print(note.content)
            break

asyncio.run(watch())

page = resolver.get_post(post.id, 10, None)
print([edge.node.content for edge in page.comments.edges])
```

## Choosing storage

`postboard.bootstrap.build_resolver(storage_kind, database_url=None)` builds a
ready `Resolver`:

- `"in-memory"` – uses `postboard.memory.InMemoryStorage`.
- `"postgres"` – calls `postboard.database.open_database(database_url)` and
  uses `PostService` and `CommentService` from `postboard.services`. A
  `database_url` is required (`ValueError` otherwise); a connection or
  migration failure is raised as `StorageError`.

Any other kind raises `ValueError("unknown storage type")`.

```python
from postboard.bootstrap import build_resolver
from postboard.database import postgres_url

password = "password"
url = postgres_url("localhost", "5432", "user", password, "board")
resolver = build_resolver("postgres", url)
```

`open_database` accepts any SQLAlchemy URL: it checks that the database
answers (`SELECT 1`) and creates the `posts` and `comments` tables if they are
missing. SQLite URLs work as well, which is convenient for tests. The
`Database` it returns offers `migrate()`, `run_in_transaction(operation)` and
`close()`.

## Pagination

Comments of a post are ordered by creation time. Ask for the first page with
`after=None`, then pass the previous page's `end_cursor` as `after` while
`has_next_page` is true. `first=0` gives an empty page; an unknown cursor is
an error.

## Retries

`PostService` and `CommentService` run each operation in a transaction through
`postboard.retry.retry_call`. A failure whose message contains `timeout`,
`post not found`, `deadlock detected`, `canceling statement due to conflict`
or `could not serialize access` is raised at once; any other failure is tried
again, up to 5 attempts, sleeping 2 s, 4 s, … between them, and then raised
as `RetryError`. Note that a missing comment or an unknown cursor counts as
retryable, so those lookups take the full retry time before failing. Both
services take `sleep=` and `clock=` keyword arguments to replace the delay
and the timestamp source.

## Other pieces

- `postboard.models` – the dataclasses (`Post`, `Comment`, `CommentPage`,
  `CommentNotify`, …) and the storage errors: `StorageError`,
  `PostNotFoundError`, `CommentNotFoundError`,
  `CommentFromAnotherPostError`, `InvalidCursorError`.
- `postboard.keyed_lock` – `RWLock`, a reader-writer lock with
  `read_locked()` / `write_locked()` context managers, and `KeyedLock`, which
  hands out one `RWLock` per key.
- `postboard.request_log.RequestLogMiddleware(app, logger=None)` – WSGI
  middleware that logs method, path, remote address, user agent, request id
  (from `X-Request-ID`), status, bytes written and duration of each request.

## What this package does not do

It has no command-line entry point and no HTTP or GraphQL server: it provides
the resolver and the storage layers, and `RequestLogMiddleware` for wrapping
a WSGI application you supply. It does not bundle a PostgreSQL driver;
install one that SQLAlchemy supports to use `"postgres"` storage.