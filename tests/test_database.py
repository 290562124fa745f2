import pytest
from sqlalchemy import inspect, insert, select
from sqlalchemy.engine import make_url

from postboard.database import (
    Database,
    comments_table,
    open_database,
    postgres_url,
    posts_table,
)
from postboard.models import StorageError
from datetime import datetime, timezone


@pytest.fixture
def db():
    database = open_database("sqlite://")
    yield database
    database.close()


def _insert_post(conn, post_id):
    conn.execute(
        insert(posts_table).values(
            id=post_id,
            title="t",
            content="c",
            comments_allowed=True,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
    )


def test_open_database_creates_tables(db):
    names = set(inspect(db.engine).get_table_names())
    assert {"posts", "comments"} <= names


def test_migrate_is_idempotent(db):
    db.migrate()
    db.migrate()
    names = set(inspect(db.engine).get_table_names())
    assert {"posts", "comments"} <= names


def test_run_in_transaction_commits_and_returns_value(db):
    result = db.run_in_transaction(lambda conn: (_insert_post(conn, "p1"), 42)[1])
    assert result == 42
    ids = db.run_in_transaction(
        lambda conn: [row.id for row in conn.execute(select(posts_table.c.id))]
    )
    assert ids == ["p1"]


def test_run_in_transaction_rolls_back_on_error(db):
    def failing(conn):
        _insert_post(conn, "p2")
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        db.run_in_transaction(failing)
    ids = db.run_in_transaction(
        lambda conn: [row.id for row in conn.execute(select(posts_table.c.id))]
    )
    assert ids == []


def test_comments_table_accepts_null_parent(db):
    def operation(conn):
        conn.execute(
            insert(comments_table).values(
                id="c1",
                post_id="p1",
                parent_id=None,
                content="hello",
                created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )
        )
        return conn.execute(select(comments_table)).one()

    row = db.run_in_transaction(operation)
    assert row.parent_id is None
    assert row.content == "hello"


def test_open_database_unreachable_raises(tmp_path):
    bad = tmp_path / "missing" / "dir" / "board.db"
    with pytest.raises(StorageError, match="failed to connect database"):
        open_database(f"sqlite:///{bad}")


def test_open_database_file_persists(tmp_path):
    path = tmp_path / "board.db"
    first = open_database(f"sqlite:///{path}")
    first.run_in_transaction(lambda conn: _insert_post(conn, "kept"))
    first.close()
    second = open_database(f"sqlite:///{path}")
    ids = second.run_in_transaction(
        lambda conn: [row.id for row in conn.execute(select(posts_table.c.id))]
    )
    second.close()
    assert ids == ["kept"]


def test_postgres_url_round_trip():
    password = "password"
    url = make_url(postgres_url("localhost", "5432", "user", password, "board"))
    assert url.drivername == "postgresql"
    assert url.host == "localhost"
    assert url.port == 5432
    assert url.username == "user"
    assert url.password == password
    assert url.database == "board"


def test_database_wraps_engine(db):
    wrapped = Database(db.engine)
    assert wrapped.run_in_transaction(lambda conn: conn.execute(select(1)).scalar()) == 1