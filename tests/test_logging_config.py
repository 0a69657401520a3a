from __future__ import annotations

import logging

from vendorpay.logging_config import RequestIdFilter, new_request_id, request_id_scope


def _record() -> logging.LogRecord:
    return logging.LogRecord("vendorpay.test", logging.INFO, __file__, 1, "hello", None, None)


def test_request_id_scope_binds_and_restores() -> None:
    log_filter = RequestIdFilter()
    with request_id_scope("req-123") as request_id:
        assert request_id == "req-123"
        record = _record()
        assert log_filter.filter(record) is True
        assert record.request_id == "req-123"

    outside = _record()
    log_filter.filter(outside)
    assert outside.request_id == "-"


def test_new_request_id_replaces_blank_or_oversized_values() -> None:
    assert new_request_id("  abc  ") == "abc"
    generated = new_request_id(" ")
    assert len(generated) == 32
    assert new_request_id("x" * 65) != "x" * 65
    assert new_request_id(None) != new_request_id(None)
