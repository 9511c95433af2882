# Overview: Transient user-facing notifications collected per request and attached to JSON responses.

"""
Notifications are the API's "toasts": short messages the UI shows once and
forgets. They are collected on ``flask.g`` while a request (or CLI command)
runs and drained into the ``notifications`` key of JSON object responses.

Errors are logged as well as queued; the caller still decides the HTTP status.
"""
from __future__ import annotations

import json

from flask import Flask, Response, current_app, g

LEVELS = ("success", "error", "info", "warning")


def _queue() -> list[dict]:
    if not hasattr(g, "notifications"):
        g.notifications = []
    return g.notifications


def notify(level: str, title: str, description: str | None = None) -> dict:
    if level not in LEVELS:
        raise ValueError(f"Unknown notification level: {level}")
    entry = {"level": level, "title": title, "description": description}
    _queue().append(entry)
    return entry


def success(title: str, description: str | None = None) -> dict:
    return notify("success", title, description)


def info(title: str, description: str | None = None) -> dict:
    return notify("info", title, description)


def error(title: str, exc: BaseException | str | None = None) -> dict:
    """Log ``exc`` and queue an error notification describing it."""
    description = str(exc) if exc is not None else None
    if isinstance(exc, BaseException):
        current_app.logger.error("%s: %s", title, exc, exc_info=exc)
    else:
        current_app.logger.error("%s%s", title, f": {description}" if description else "")
    return notify("error", title, description)


def pending() -> list[dict]:
    return list(_queue())


def drain() -> list[dict]:
    items = list(_queue())
    g.notifications = []
    return items


def init_app(app: Flask) -> None:
    @app.after_request
    def attach_notifications(response: Response) -> Response:
        items = drain()
        if not items or not response.is_json:
            return response
        payload = response.get_json(silent=True)
        if isinstance(payload, dict):
            payload["notifications"] = items
            response.set_data(json.dumps(payload))
        return response
