"""
Advisory notification sink.

Fire-and-forget: messages are flashed to the session (Flask `flash`) and
logged. Display failures never propagate to the calling command.
"""

from __future__ import annotations

import logging

from flask import flash, has_request_context

logger = logging.getLogger(__name__)

SUCCESS = "success"
INFO = "info"
WARNING = "warning"
DANGER = "danger"

_LOG_LEVELS = {
    SUCCESS: logging.INFO,
    INFO: logging.INFO,
    WARNING: logging.WARNING,
    DANGER: logging.WARNING,
}


def notify(message: str, category: str = INFO) -> None:
    logger.log(_LOG_LEVELS.get(category, logging.INFO), "[%s] %s", category, message)

    if not has_request_context():
        return
    try:
        flash(message, category)
    except RuntimeError:
        # No session available (e.g. no SECRET_KEY); the message was logged above.
        logger.debug("Could not flash notification: %s", message)
