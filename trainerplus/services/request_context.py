"""Per-request correlation data: request id, start time and acting user."""

import time
import uuid
from typing import Optional

from flask import Flask, g, request

REQUEST_ID_HEADER = 'X-Request-ID'


def _incoming_request_id() -> Optional[str]:
    candidate = request.headers.get(REQUEST_ID_HEADER)
    if not candidate:
        return None
    try:
        return str(uuid.UUID(candidate))
    except ValueError:
        return None


def get_request_id() -> Optional[str]:
    return g.get('request_id')


def set_actor(actor_id: Optional[str]):
    """Attach the authenticated user id; called once the JWT is verified."""
    if actor_id:
        g.actor_id = str(actor_id)


def get_request_context() -> dict:
    """Fields every log line written during a request should carry."""
    return {
        'request_id': g.get('request_id'),
        'method': request.method,
        'path': request.path,
        'actor_id': g.get('actor_id'),
    }


def init_request_context(app: Flask):
    @app.before_request
    def assign_request_id():
        g.request_id = _incoming_request_id() or str(uuid.uuid4())
        g.request_start_time = time.time()
        g.actor_id = None

    @app.after_request
    def echo_request_id(response):
        request_id = g.get('request_id')
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        started = g.get('request_start_time')
        if started is not None:
            response.headers['X-Response-Time'] = f"{(time.time() - started) * 1000:.2f}ms"
        return response
