import logging
from wsgiref.util import setup_testing_defaults

import pytest

from postboard.request_log import RequestLogMiddleware

LOGGER_NAME = "tests.request_log"


def _environ(**extra):
    environ = {"PATH_INFO": "/query", "REQUEST_METHOD": "POST"}
    environ.update(extra)
    setup_testing_defaults(environ)
    return environ


def _app(environ, start_response):
    start_response("201 Created", [("Content-Type", "text/plain")])
    return [b"hello", b"!"]


def _failing_app(environ, start_response):
    raise RuntimeError("boom")


def _run(middleware, environ):
    captured = {}

    def start_response(status, headers, exc_info=None):
        captured["status"] = status
        return lambda data: None

    body = middleware(environ, start_response)
    try:
        data = b"".join(body)
    finally:
        body.close()
    return captured["status"], data


def _completed(caplog):
    return [r for r in caplog.records if r.getMessage() == "request completed"]


def test_body_and_status_pass_through(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    middleware = RequestLogMiddleware(_app, logging.getLogger(LOGGER_NAME))
    status, data = _run(middleware, _environ())
    assert status == "201 Created"
    assert data == b"hello!"


def test_completed_request_is_logged(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    middleware = RequestLogMiddleware(_app, logging.getLogger(LOGGER_NAME))
    _run(middleware, _environ(HTTP_USER_AGENT="tester", HTTP_X_REQUEST_ID="req-1"))
    records = _completed(caplog)
    assert len(records) == 1
    record = records[0]
    assert record.status == 201
    assert record.bytes == len(b"hello!")
    assert record.method == "POST"
    assert record.path == "/query"
    assert record.user_agent == "tester"
    assert record.request_id == "req-1"
    assert record.component == "server/middleware/logger"
    assert record.duration.endswith("s")


def test_enabled_message_logged_on_creation(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    RequestLogMiddleware(_app, logging.getLogger(LOGGER_NAME))
    messages = [r.getMessage() for r in caplog.records]
    assert "middleware logger enabled" in messages


def test_log_written_once_even_if_closed_twice(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    middleware = RequestLogMiddleware(_app, logging.getLogger(LOGGER_NAME))
    body = middleware(_environ(), lambda status, headers, exc_info=None: None)
    assert list(body) == [b"hello", b"!"]
    body.close()
    body.close()
    assert len(_completed(caplog)) == 1


def test_failing_app_is_logged_and_reraised(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    middleware = RequestLogMiddleware(_failing_app, logging.getLogger(LOGGER_NAME))
    with pytest.raises(RuntimeError, match="boom"):
        middleware(_environ(), lambda status, headers, exc_info=None: None)
    records = _completed(caplog)
    assert len(records) == 1
    assert records[0].status == 0
    assert records[0].bytes == 0