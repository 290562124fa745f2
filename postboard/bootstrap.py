"""Assembling a resolver over the configured storage back end."""

from __future__ import annotations

import logging
from typing import Optional

from postboard.database import open_database
from postboard.keyed_lock import KeyedLock
from postboard.memory import InMemoryStorage
from postboard.models import StorageError
from postboard.resolver import Resolver
from postboard.services import CommentService, PostService

IN_MEMORY = "in-memory"
POSTGRES = "postgres"

log = logging.getLogger(__name__)


def build_resolver(storage_kind: str, database_url: Optional[str] = None) -> Resolver:
    """Create a resolver over ``in-memory`` or ``postgres`` storage."""
    if storage_kind == IN_MEMORY:
        storage = InMemoryStorage()
        resolver = Resolver(
            storage.post_storage(),
            storage.comment_storage(),
            storage=storage,
            locks=KeyedLock(),
        )
    elif storage_kind == POSTGRES:
        if not database_url:
            raise ValueError("database url is required for postgres storage")
        try:
            db = open_database(database_url)
        except StorageError as exc:
            raise StorageError(f"failed to initialize postgres database: {exc}") from exc
        resolver = Resolver(
            PostService(db),
            CommentService(db),
            storage=db,
            locks=KeyedLock(),
        )
    else:
        raise ValueError("unknown storage type")

    log.info("resolver initialized successfully", extra={"storage_type": storage_kind})
    return resolver