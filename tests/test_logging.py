import json
import logging

from seedshop.core.logging_config import (
    LoggerAdapter,
    SecurityFilter,
    StructuredFormatter,
    request_id_var,
)


def make_record(msg, **extra):
    record = logging.LogRecord("seedshop.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_json():
    formatter = StructuredFormatter("seedshop-orders", "test", "1.2.3")
    doc = json.loads(formatter.format(make_record("Order created", extra_fields={"order_id": 7})))

    assert doc["message"] == "Order created"
    assert doc["level"] == "INFO"
    assert doc["service"] == "seedshop-orders"
    assert doc["environment"] == "test"
    assert doc["version"] == "1.2.3"
    assert doc["custom"] == {"order_id": 7}
    assert "trace" not in doc


def test_formatter_includes_request_id():
    token = request_id_var.set("req-42")
    try:
        doc = json.loads(StructuredFormatter().format(make_record("hello", duration_ms=3.5)))
    finally:
        request_id_var.reset(token)

    assert doc["trace"] == {"request_id": "req-42"}
    assert doc["performance"] == {"duration_ms": 3.5}


def test_database_url_credentials_are_redacted():
    record = make_record("Connecting to postgresql+psycopg2://seeds:hunter2@db:5432/seed_shop now")
    assert SecurityFilter().filter(record)
    assert "hunter2" not in record.msg
    assert "postgresql+psycopg2://seeds:***@db:5432/seed_shop" in record.msg


def test_adapter_merges_request_id():
    adapter = LoggerAdapter(logging.getLogger("seedshop.test"), {})
    token = request_id_var.set("req-7")
    try:
        _, kwargs = adapter.process("msg", {"extra": {"extra_fields": {"order_id": 1}}})
    finally:
        request_id_var.reset(token)
    assert kwargs["extra"]["extra_fields"] == {"order_id": 1, "request_id": "req-7"}
