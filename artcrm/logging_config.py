"""Logging setup for the Flask app."""

from __future__ import annotations

import logging

from flask import Flask, g, has_request_context, request

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(request_info)s%(message)s"


class RequestContextFilter(logging.Filter):
    """Adds method/path/user to records emitted inside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        info = ""
        if has_request_context():
            # Only an identity already loaded this request; never trigger a load from a log call.
            user_id = getattr(g.get("_login_user"), "id", None)
            info = f"{request.method} {request.path} user={user_id or '-'} "
        record.request_info = info
        return True


def configure_logging(app: Flask) -> None:
    """
    Route the package loggers ("artcrm.*") through one handler at LOG_LEVEL.

    Idempotent: calling twice (e.g. app factory in tests) does not stack handlers.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)

    logger = logging.getLogger("artcrm")
    logger.setLevel(level)

    if not any(getattr(h, "_artcrm", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.addFilter(RequestContextFilter())
        handler._artcrm = True
        logger.addHandler(handler)

    app.logger.setLevel(level)
