"""
Structured logging.

Every record is emitted either as one JSON object per line (production) or as
``message key=value ...`` text (local runs and tests). Keyword fields passed to
the logger land at the top level of the JSON object, next to the request id
and the acting user when a request is in flight.

Domain helpers keep event names consistent across services:
``log_ledger_event`` for balance/status changes, ``log_payment_event`` for
checkout and webhook reconciliation.
"""

import json
import logging
import time
from datetime import datetime, timezone

from flask import Flask, g, has_request_context, request

from trainerplus.services.request_context import get_request_context

QUIET_PATHS = ('/healthz', '/readyz', '/metrics')

_SEVERITY = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
}


class StructuredFormatter(logging.Formatter):

    def __init__(self, json_enabled: bool = True):
        super().__init__('%(asctime)s %(levelname)s %(name)s: %(message)s')
        self.json_enabled = json_enabled

    def format(self, record: logging.LogRecord) -> str:
        fields = dict(getattr(record, 'fields', None) or {})

        if not self.json_enabled:
            text = super().format(record)
            if fields:
                text += ' ' + ' '.join(f"{k}={v}" for k, v in fields.items())
            return text

        entry = {
            'ts': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'msg': record.getMessage(),
        }
        if has_request_context():
            entry.update({k: v for k, v in get_request_context().items() if v is not None})
        entry.update(fields)
        if record.exc_info:
            entry['exc'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class StructuredLogger:
    """Thin wrapper over ``logging.Logger`` taking context as keyword fields."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log(self, level: int, message: str, exc_info=False, **fields):
        self.logger.log(level, message, exc_info=exc_info, extra={'fields': fields})

    def debug(self, message: str, **fields):
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self.log(logging.ERROR, message, **fields)

    def exception(self, message: str, **fields):
        self.log(logging.ERROR, message, exc_info=True, **fields)

    def _event(self, level: int, category: str, event: str, **fields):
        # category always owns event_type
        fields['event_type'] = category
        self.log(level, f"{category}.{event}", **fields)

    def log_ledger_event(self, event: str, subscription_id: str, **fields):
        self._event(logging.INFO, 'ledger', event, subscription_id=subscription_id, **fields)

    def log_payment_event(self, event: str, success: bool = True, **fields):
        self._event(logging.INFO if success else logging.ERROR, 'payment', event,
                    success=success, **fields)

    def log_rate_limit_event(self, scope: str, limit_exceeded: bool, **fields):
        self._event(logging.WARNING if limit_exceeded else logging.DEBUG, 'rate_limit', scope,
                    limit_exceeded=limit_exceeded, **fields)

    def log_security_event(self, event: str, severity: str = 'info', **fields):
        self._event(_SEVERITY.get(severity.lower(), logging.INFO), 'security', event, **fields)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


def configure_logging(app: Flask):
    """Install a single structured handler on the root logger."""
    json_enabled = str(app.config.get('LOG_JSON', True)).lower() in ('1', 'true', 'yes', 'on')
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(json_enabled=json_enabled))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    app.logger.setLevel(level)

    get_logger('trainerplus.config').info("Logging configured", json_enabled=json_enabled,
                                          log_level=logging.getLevelName(level))


def init_logging(app: Flask):
    """Configure logging and log one line per finished request."""
    configure_logging(app)
    access_log = get_logger('trainerplus.requests')

    @app.after_request
    def log_request(response):
        if request.path in QUIET_PATHS:
            return response
        started = g.get('request_start_time')
        access_log.info(
            f"{request.method} {request.path} {response.status_code}",
            event_type='request',
            status_code=response.status_code,
            duration_ms=round((time.time() - started) * 1000, 2) if started else None,
        )
        return response

    get_logger('trainerplus.startup').info("Application starting", testing=app.testing)
