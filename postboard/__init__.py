"""Posts, threaded comments, cursor pagination and comment notifications over memory or SQL storage."""

__version__ = "0.1.0"