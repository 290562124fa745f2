"""WSGI middleware that logs one line for every completed request."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, Iterator, Optional

COMPONENT = "server/middleware/logger"


class _LoggedBody:
    """Wraps a response body, counting bytes and reporting once it is closed."""

    def __init__(self, result: Iterable[bytes], counter: Dict[str, int], done: Callable[[], None]):
        self._result = result
        self._counter = counter
        self._done = done
        self._finished = False

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._result:
            self._counter["bytes"] += len(chunk)
            yield chunk

    def close(self) -> None:
        try:
            close = getattr(self._result, "close", None)
            if close is not None:
                close()
        finally:
            if not self._finished:
                self._finished = True
                self._done()


class RequestLogMiddleware:
    """Logs method, path, client, status, size and duration of each request."""

    def __init__(self, app: Callable, logger: Optional[logging.Logger] = None) -> None:
        self.app = app
        self.log = logger if logger is not None else logging.getLogger(__name__)
        self.log.info("middleware logger enabled", extra={"component": COMPONENT})

    def __call__(self, environ: dict, start_response: Callable):
        remote = environ.get("REMOTE_ADDR", "")
        if environ.get("REMOTE_PORT"):
            remote = f"{remote}:{environ['REMOTE_PORT']}"
        fields = {
            "component": COMPONENT,
            "method": environ.get("REQUEST_METHOD", ""),
            "path": environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", ""),
            "remote_addr": remote,
            "user_agent": environ.get("HTTP_USER_AGENT", ""),
            "request_id": environ.get("HTTP_X_REQUEST_ID", ""),
        }
        counter = {"status": 0, "bytes": 0}
        started = time.perf_counter()

        def recording_start_response(status, headers, exc_info=None):
            counter["status"] = int(status.split(None, 1)[0])
            write = start_response(status, headers, exc_info)

            def counting_write(data: bytes):
                counter["bytes"] += len(data)
                return write(data)

            return counting_write

        def finish() -> None:
            elapsed = time.perf_counter() - started
            self.log.info(
                "request completed",
                extra={
                    **fields,
                    "status": counter["status"],
                    "bytes": counter["bytes"],
                    "duration": f"{elapsed:.6f}s",
                },
            )

        try:
            result = self.app(environ, recording_start_response)
        except BaseException:
            finish()
            raise
        return _LoggedBody(result, counter, finish)