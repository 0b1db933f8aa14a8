"""
src/dms/application/preflight.py
Preflight — 엔진 arm 이전 1회 점검

순서:
[1] 운영자/recipient 주소 문법 검증 → ConfigInvalidError
[2] 메일 서버 TCP 연결 (timeout 5s) → PreflightError
[3] 운영자 본인에게 테스트 메일 (credential 확인) → PreflightError

첫 interval 동안 credential 오타를 모른 채 기다리지 않도록 시작 시점에 확인.
"""

import logging
import socket
from typing import Callable, Optional, Sequence

from dms.domain.errors import ConfigInvalidError, PreflightError
from dms.domain.ids import is_valid_address
from dms.interfaces.notification_port import NotificationPort

logger = logging.getLogger(__name__)

PREFLIGHT_TCP_TIMEOUT = 5.0
TEST_SUBJECT = "Dead Man's Switch credential check"
TEST_BODY = b"Test to check your credentials. Have a nice day :)"


def check_addresses(operator_address: str, recipients: Sequence[str]) -> None:
    """
    주소 문법 검증

    Raises:
        ConfigInvalidError: 잘못된 주소 또는 빈 recipients
    """
    if not is_valid_address(operator_address or ""):
        raise ConfigInvalidError(f"Invalid operator address: {operator_address!r}")

    if not recipients:
        raise ConfigInvalidError("Recipient list must not be empty")

    invalid = [r for r in recipients if not is_valid_address(r)]
    if invalid:
        raise ConfigInvalidError(f"Invalid recipient address(es): {', '.join(invalid)}")


def check_reachability(
    server: str,
    port: int,
    timeout: float = PREFLIGHT_TCP_TIMEOUT,
    connect: Optional[Callable] = None,
) -> None:
    """
    메일 서버 TCP 연결 확인

    Raises:
        PreflightError: 연결 실패 / timeout
    """
    if not server:
        raise PreflightError("Mail server is not configured")

    connect = connect or socket.create_connection
    try:
        conn = connect((server, int(port)), timeout=timeout)
    except OSError as e:
        raise PreflightError(f"Mail server {server}:{port} is unreachable: {e}") from e

    conn.close()
    logger.info(f"✅ Mail server reachable: {server}:{port}")


def check_credentials(notifier: NotificationPort, operator_address: str) -> None:
    """
    운영자 본인에게 테스트 메일 전송

    Raises:
        PreflightError: 전송 실패 (credential 거부 등)
    """
    try:
        ok = notifier.send([operator_address], TEST_SUBJECT, TEST_BODY)
    except Exception as e:
        raise PreflightError(f"Test mail failed: {type(e).__name__}: {e}") from e

    if not ok:
        raise PreflightError("Test mail failed: check email, password and mail server")

    logger.info(f"✅ Test mail sent to {operator_address}")


def run_preflight(
    operator_address: str,
    recipients: Sequence[str],
    server: str,
    port: int,
    notifier: NotificationPort,
    timeout: float = PREFLIGHT_TCP_TIMEOUT,
    connect: Optional[Callable] = None,
) -> None:
    """
    Preflight 전체 실행 ([1] → [2] → [3])

    Raises:
        ConfigInvalidError: 주소 오류
        PreflightError: 도달 불가 / credential 거부
    """
    check_addresses(operator_address, recipients)
    check_reachability(server, port, timeout=timeout, connect=connect)
    check_credentials(notifier, operator_address)
