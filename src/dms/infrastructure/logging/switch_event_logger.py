"""
src/dms/infrastructure/logging/switch_event_logger.py
Switch Event Logger — engine 이벤트 + context snapshot

원칙:
1. 이벤트 이름 + phase + context snapshot 포함
2. Context snapshot: remaining_forgiveness, masked code, recipients 수 등
3. Secret은 절대 기록하지 않음, code는 mask_code()로만 기록
4. Schema validation: 필수 필드 누락 시 SwitchEventValidationError

Exports:
- log_switch_event(): 이벤트 레코드 생성 + logger 출력
- build_switch_event(): 레코드 생성 (schema validation 포함)
- validate_switch_event_schema(): 필수 필드 검증
- SwitchEventValidationError: 필수 필드 누락 예외
"""

import json
import logging
import time
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

EVENT_LEVELS = {
    "armed": logging.INFO,
    "challenge_issued": logging.INFO,
    "check_in_accepted": logging.INFO,
    "check_in_rejected": logging.DEBUG,
    "tick_skipped": logging.DEBUG,
    "stopped": logging.INFO,
    "notification_failed": logging.ERROR,
    "triggered": logging.CRITICAL,
}


class SwitchEventValidationError(Exception):
    """Switch event schema validation 실패"""

    pass


def build_switch_event(
    event: str,
    phase: str,
    context: Dict[str, Any],
    timestamp: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Switch 이벤트 레코드 생성

    Args:
        event: 이벤트 이름 (e.g., "challenge_issued", "triggered")
        phase: 현재 phase (e.g., "ARMED", "TRIGGERED")
        context: Context snapshot
        timestamp: 이벤트 시각 (UNIX timestamp, default: time.time())

    Returns:
        record: event record (dict)
    """
    record = {
        "timestamp": timestamp if timestamp is not None else time.time(),
        "event": event,
        "phase": phase,
        "context": context,
    }

    validate_switch_event_schema(record)

    return record


def validate_switch_event_schema(record: Dict[str, Any]) -> None:
    """
    Switch event schema validation

    Raises:
        SwitchEventValidationError: 필수 필드 누락 또는 context가 dict 아님

    Required fields:
        - timestamp (float)
        - event (str)
        - phase (str)
        - context (dict)
    """
    required_fields = ["timestamp", "event", "phase", "context"]

    for field in required_fields:
        if field not in record:
            raise SwitchEventValidationError(f"Missing required field: {field}")

    if not isinstance(record.get("context"), dict):
        raise SwitchEventValidationError("context must be a dict")

    if not record.get("event"):
        raise SwitchEventValidationError("event must not be empty")


def log_switch_event(
    event: str,
    phase: str,
    context: Optional[Dict[str, Any]] = None,
    timestamp: Optional[float] = None,
) -> Dict[str, Any]:
    """
    이벤트 레코드 생성 후 logger로 출력

    Returns:
        record: 출력된 event record
    """
    record = build_switch_event(event, phase, context or {}, timestamp=timestamp)
    level = EVENT_LEVELS.get(event, logging.INFO)
    logger.log(level, f"[SWITCH:{event}] {json.dumps(record, sort_keys=True, default=str)}")
    return record
