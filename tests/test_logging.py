import json
import logging

from trainerplus.services.structured_logging import StructuredFormatter, get_logger


def _record(message="hello", **fields):
    record = logging.LogRecord("trainerplus.test", logging.INFO, __file__, 1, message, None, None)
    record.fields = fields
    return record


def test_json_line_carries_fields():
    line = StructuredFormatter(json_enabled=True).format(_record(subscription_id="abc", remaining=3))
    entry = json.loads(line)
    assert entry["msg"] == "hello"
    assert entry["level"] == "INFO"
    assert entry["subscription_id"] == "abc"
    assert entry["remaining"] == 3


def test_plain_line_appends_key_values():
    line = StructuredFormatter(json_enabled=False).format(_record(event_type="ledger"))
    assert line.endswith("hello event_type=ledger")


def test_request_context_in_json(app):
    formatter = StructuredFormatter(json_enabled=True)
    with app.test_request_context("/api/v1/attendance", method="POST"):
        app.preprocess_request()
        entry = json.loads(formatter.format(_record()))
    assert entry["method"] == "POST"
    assert entry["path"] == "/api/v1/attendance"
    assert len(entry["request_id"]) == 36


def test_domain_helpers_keep_their_category(caplog):
    log = get_logger("trainerplus.test")
    with caplog.at_level(logging.DEBUG, logger="trainerplus.test"):
        log.log_payment_event("webhook_received", event_type="checkout.session.completed")
        log.log_ledger_event("created", "sub-1", event_type="other")

    payment, ledger = caplog.records
    assert payment.getMessage() == "payment.webhook_received"
    assert payment.fields["event_type"] == "payment"
    assert ledger.fields == {"subscription_id": "sub-1", "event_type": "ledger"}
