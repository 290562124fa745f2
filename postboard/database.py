"""Relational storage: schema, connection set-up and transactions."""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from postboard.models import StorageError

T = TypeVar("T")

CONNECT_TIMEOUT = 5

metadata = MetaData()

posts_table = Table(
    "posts",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("title", Text, nullable=False),
    Column("content", Text, nullable=False),
    Column("comments_allowed", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

comments_table = Table(
    "comments",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("post_id", String(64), nullable=False, index=True),
    Column("parent_id", String(64), nullable=True),
    Column("content", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


class Database:
    """A database engine holding the posts and comments tables."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def migrate(self) -> None:
        """Create the tables that do not exist yet."""
        metadata.create_all(self.engine, checkfirst=True)

    def run_in_transaction(self, operation: Callable[[Connection], T]) -> T:
        """Run ``operation`` with a connection; commit on success, roll back on error."""
        with self.engine.begin() as conn:
            return operation(conn)

    def close(self) -> None:
        self.engine.dispose()


def postgres_url(address: str, port: Any, user: str, password: str, dbname: str) -> str:
    """Build a PostgreSQL connection URL from its parts."""
    url = URL.create(
        "postgresql",
        username=user,
        password=password,
        host=address,
        port=int(port),
        database=dbname,
    )
    return url.render_as_string(hide_password=False)


def open_database(url: str) -> Database:
    """Connect to the database at ``url``, check it answers and create the tables."""
    parsed = make_url(url)
    backend = parsed.get_backend_name()
    options: dict = {}
    if backend == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    elif backend == "postgresql":
        options["connect_args"] = {"connect_timeout": CONNECT_TIMEOUT}

    try:
        engine = create_engine(parsed, **options)
    except Exception as exc:
        raise StorageError(f"failed to connect database: {exc}") from exc

    db = Database(engine)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        engine.dispose()
        raise StorageError(f"failed to connect database: {exc}") from exc

    try:
        db.migrate()
    except SQLAlchemyError as exc:
        engine.dispose()
        raise StorageError(f"failed to migrate: failed to create table: {exc}") from exc
    return db