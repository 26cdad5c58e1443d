"""
Prometheus metrics.

The collectors hang off ``app.extensions['metrics']`` with a registry owned by
that app, so creating several apps in one process (the test suite does) never
trips over duplicate metric names. Services call ``record("record_...")``;
outside an app context, or with metrics disabled, that is a no-op.
"""

import time
from typing import Optional

from flask import Flask, current_app, g, has_app_context, request
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram
from prometheus_client.exposition import generate_latest

UNMATCHED_ROUTE = '<unmatched>'


class MetricsService:

    def __init__(self, registry: Optional[CollectorRegistry] = None, enabled: bool = True):
        self.enabled = enabled
        self.registry = registry or CollectorRegistry()
        if not enabled:
            return

        self.http_requests = Counter(
            'trainerplus_http_requests_total', 'HTTP requests served.',
            ['route', 'method', 'status'], registry=self.registry)
        self.http_latency = Histogram(
            'trainerplus_http_request_duration_seconds', 'HTTP request latency.',
            ['route', 'method'], registry=self.registry)
        self.attendance_marks = Counter(
            'trainerplus_attendance_marks_total', 'Attendance marks by status and outcome.',
            ['status', 'outcome'], registry=self.registry)
        self.credits_consumed = Counter(
            'trainerplus_credits_consumed_total', 'Session credits taken from subscriptions.',
            registry=self.registry)
        self.provider_events = Counter(
            'trainerplus_provider_events_total', 'Payment provider events by type and outcome.',
            ['event_type', 'outcome'], registry=self.registry)
        self.rate_limit_hits = Counter(
            'trainerplus_rate_limit_hits_total', 'Requests rejected by the rate limiter.',
            registry=self.registry)

    def record_http_request(self, route: str, method: str, status_code: int, seconds: float):
        if not self.enabled:
            return
        self.http_requests.labels(route=route, method=method, status=str(status_code)).inc()
        self.http_latency.labels(route=route, method=method).observe(seconds)

    def record_attendance_mark(self, status: str, outcome: str):
        if self.enabled:
            self.attendance_marks.labels(status=status, outcome=outcome).inc()

    def record_credit_consumed(self):
        if self.enabled:
            self.credits_consumed.inc()

    def record_provider_event(self, event_type: str, outcome: str):
        if self.enabled:
            self.provider_events.labels(event_type=event_type, outcome=outcome).inc()

    def record_rate_limit_hit(self):
        if self.enabled:
            self.rate_limit_hits.inc()

    def exposition(self) -> bytes:
        return generate_latest(self.registry) if self.enabled else b''


def get_metrics_service() -> Optional[MetricsService]:
    if not has_app_context():
        return None
    return current_app.extensions.get('metrics')


def record(method_name: str, *args):
    service = get_metrics_service()
    if service is not None:
        getattr(service, method_name)(*args)


def init_metrics(app: Flask) -> MetricsService:
    service = MetricsService(enabled=app.config.get('METRICS_ENABLED', True))
    app.extensions['metrics'] = service
    if not service.enabled:
        return service

    @app.before_request
    def start_timer():
        g.metrics_started = time.perf_counter()

    @app.after_request
    def observe(response):
        started = g.get('metrics_started')
        if started is not None:
            # Label by URL rule, not raw path, to keep cardinality bounded.
            route = request.url_rule.rule if request.url_rule else UNMATCHED_ROUTE
            service.record_http_request(route, request.method, response.status_code,
                                        time.perf_counter() - started)
        return response

    @app.route('/metrics')
    def metrics():
        return service.exposition(), 200, {'Content-Type': CONTENT_TYPE_LATEST}

    return service
