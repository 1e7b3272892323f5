import json
import logging
from io import StringIO

from ibanscan.utils.forensic_context import forensic_scope, get_forensic_fields
from ibanscan.utils.logging_setup import ForensicContextFilter, IbanMaskingFilter, JsonLineFormatter, log_event


def test_json_formatter_includes_contextvars():
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonLineFormatter())
    handler.addFilter(IbanMaskingFilter())
    handler.addFilter(ForensicContextFilter())
    logger = logging.getLogger("ibanscan.test_forensic")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    logger.handlers = []
    logger.addHandler(handler)

    with forensic_scope(correlation_id="corr-1", phase="ocr", unknown="ignored"):
        log_event(logger, "test.event", "Test message", iban="SA0380000000608010167519", foo="bar")

    handler.flush()
    payload = json.loads(stream.getvalue().strip())
    assert payload["forensic"]["correlation_id"] == "corr-1"
    assert payload["forensic"]["phase"] == "ocr"
    assert payload["event_name"] == "test.event"
    assert payload["extra"]["foo"] == "bar"
    assert "SA0380000000608010167519" not in payload["message"]


def test_forensic_scope_restores_previous_values():
    with forensic_scope(correlation_id="outer"):
        with forensic_scope(correlation_id="inner", record_id=7):
            assert get_forensic_fields()["record_id"] == 7
        fields = get_forensic_fields()
        assert fields["correlation_id"] == "outer"
        assert fields["record_id"] is None
    assert get_forensic_fields()["correlation_id"] is None
