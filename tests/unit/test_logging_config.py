"""Unit tests for structured log formatting."""

import json
import logging

from logging_config import CustomJsonFormatter


def format_record(message, **extra):
    formatter = CustomJsonFormatter('%(levelname)s %(name)s %(message)s', rename_fields={'levelname': 'level'})
    record = logging.LogRecord("services.cart_service", logging.WARNING, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(formatter.format(record))


def test_record_is_json_with_service_name():
    payload = format_record("Cart has lines for removed products", user_id="user1")

    assert payload["service"] == "storefront-service"
    assert payload["msg"] == "Cart has lines for removed products"
    assert payload["level"] == "WARNING"
    assert payload["environment"] == "demo"
    assert payload["user_id"] == "user1"
    assert "message" not in payload


def test_no_trace_ids_outside_a_span():
    payload = format_record("Exchange rates refreshed")
    assert "trace_id" not in payload
