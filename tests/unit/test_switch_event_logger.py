"""
tests/unit/test_switch_event_logger.py
Unit tests for switch event logger

Purpose:
- Switch event 레코드 schema (timestamp, event, phase, context)
- 이벤트별 log level (triggered → CRITICAL 등)
- Secret / 원본 code가 로그에 남지 않음

Test Coverage:
1. log_switch_event_includes_required_fields
2. validate_switch_event_schema_rejects_missing_required_field
3. event level mapping
4. engine 로그에 secret / 전체 code 미포함
"""

import logging

import pytest

from dms.application.switch_engine import SwitchEngine
from dms.infrastructure.logging.switch_event_logger import (
    SwitchEventValidationError,
    build_switch_event,
    log_switch_event,
    validate_switch_event_schema,
)
from dms.infrastructure.notification.fake_notifier import FakeNotifier


def test_log_switch_event_includes_required_fields():
    record = log_switch_event(
        "challenge_issued",
        "ARMED",
        {"code": "ab**************", "remaining_forgiveness": 1},
        timestamp=1705593600.0,
    )

    assert record["timestamp"] == 1705593600.0
    assert record["event"] == "challenge_issued"
    assert record["phase"] == "ARMED"
    assert record["context"]["remaining_forgiveness"] == 1


def test_log_switch_event_default_context_and_timestamp():
    record = log_switch_event("stopped", "ARMED")

    assert record["context"] == {}
    assert isinstance(record["timestamp"], float)


@pytest.mark.parametrize("missing", ["timestamp", "event", "phase", "context"])
def test_validate_schema_rejects_missing_required_field(missing):
    record = {"timestamp": 1.0, "event": "armed", "phase": "ARMED", "context": {}}
    del record[missing]

    with pytest.raises(SwitchEventValidationError, match=missing):
        validate_switch_event_schema(record)


def test_validate_schema_rejects_non_dict_context():
    with pytest.raises(SwitchEventValidationError):
        build_switch_event("armed", "ARMED", context=["not", "a", "dict"])


def test_validate_schema_rejects_empty_event():
    with pytest.raises(SwitchEventValidationError):
        build_switch_event("", "ARMED", context={})


@pytest.mark.parametrize(
    "event, level",
    [
        ("triggered", logging.CRITICAL),
        ("notification_failed", logging.ERROR),
        ("challenge_issued", logging.INFO),
        ("check_in_rejected", logging.DEBUG),
        ("something_new", logging.INFO),
    ],
)
def test_event_levels(caplog, event, level):
    with caplog.at_level(logging.DEBUG, logger="dms.infrastructure.logging.switch_event_logger"):
        log_switch_event(event, "ARMED")

    assert caplog.records[-1].levelno == level
    assert f"[SWITCH:{event}]" in caplog.records[-1].getMessage()


def test_engine_logs_never_contain_secret_or_full_code(caplog, make_config):
    """
    Given: budget 0 엔진
    When: challenge → 잘못된 check-in → trigger
    Then: 로그에 secret 원문과 전체 code가 없음
    """
    secret = b"SUPER-SECRET-PAYLOAD"
    code = "abcdefghijklmnop"
    engine = SwitchEngine(notifier=FakeNotifier(), code_generator=lambda n: code)

    with caplog.at_level(logging.DEBUG):
        engine.arm(make_config(forgiveness=0, secret=secret))
        engine.run_tick()
        engine.report_check_in("abcdefghijklmnoX")
        engine.run_tick()

    text = caplog.text
    assert "[SWITCH:triggered]" in text
    assert "SUPER-SECRET-PAYLOAD" not in text
    assert code not in text
    assert "ab**************" in text
