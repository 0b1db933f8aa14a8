"""
tests/unit/test_smtp_notifier.py

SMTP Notifier Unit Tests

Coverage:
- 초기화 (환경변수 로드, enabled 속성)
- send() 성공 (465 → SMTP_SSL, 그 외 → STARTTLS)
- 바이너리 body → octet-stream 첨부
- 에러 처리 (auth error, SMTP error, network error)
"""

import smtplib
import socket
from unittest.mock import MagicMock, patch

import pytest

from dms.infrastructure.notification.smtp_notifier import SmtpNotifier

MODULE = "dms.infrastructure.notification.smtp_notifier.smtplib"


def _notifier(port=465):
    return SmtpNotifier(
        user_email="operator@example.com",
        password="app-pass",
        server="smtp.example.com",
        port=port,
    )


# Test 1: 환경변수 로드
def test_init_from_env_vars():
    """환경변수에서 계정/서버 로드"""
    env = {
        "DMS_EMAIL": "env@example.com",
        "DMS_PASSWORD": "env-pass",
        "DMS_MX_SERVER": "mx.example.com",
        "DMS_MX_PORT": "587",
    }
    with patch.dict("os.environ", env):
        notifier = SmtpNotifier()

    assert notifier.user_email == "env@example.com"
    assert notifier.server == "mx.example.com"
    assert notifier.port == 587
    assert notifier.enabled is True


# Test 2: 인자 우선
def test_init_with_args():
    notifier = _notifier(port=2525)
    assert notifier.target == "smtp.example.com:2525"
    assert notifier.enabled is True


# Test 3: Disabled 상태 (password 없음)
def test_disabled_when_no_password():
    with patch.dict("os.environ", {}, clear=True):
        notifier = SmtpNotifier(user_email="a@example.com", server="smtp.example.com")

    assert notifier.enabled is False
    assert notifier.send(["b@example.com"], "subject", b"body") is False


# Test 4: 465 → SMTP_SSL
@patch(f"{MODULE}.SMTP_SSL")
def test_send_over_implicit_tls(mock_ssl):
    """465 포트 → SMTP_SSL + login + send_message"""
    smtp = mock_ssl.return_value.__enter__.return_value

    result = _notifier().send(["a@example.com", "b@example.com"], "Hello", b"plain text body")

    assert result is True
    mock_ssl.assert_called_once_with("smtp.example.com", 465, timeout=10.0)
    smtp.login.assert_called_once_with("operator@example.com", "app-pass")

    msg = smtp.send_message.call_args[0][0]
    kwargs = smtp.send_message.call_args[1]
    assert kwargs["to_addrs"] == ["a@example.com", "b@example.com"]
    assert msg["Subject"] == "Hello"
    assert msg["To"] == "a@example.com, b@example.com"
    assert msg.get_content().strip() == "plain text body"


# Test 5: 그 외 포트 → STARTTLS
@patch(f"{MODULE}.SMTP")
def test_send_over_starttls(mock_smtp):
    smtp = mock_smtp.return_value

    result = _notifier(port=587).send(["a@example.com"], "Hello", b"body")

    assert result is True
    mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
    smtp.starttls.assert_called_once()
    smtp.__enter__.return_value.send_message.assert_called_once()


# Test 6: 바이너리 body → 첨부
@patch(f"{MODULE}.SMTP_SSL")
def test_binary_body_sent_as_attachment(mock_ssl):
    smtp = mock_ssl.return_value.__enter__.return_value
    payload = b"header\n" + bytes([0xff, 0xfe, 0x00, 0x80])

    assert _notifier().send(["a@example.com"], "Secret", payload) is True

    msg = smtp.send_message.call_args[0][0]
    attachments = list(msg.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_content_type() == "application/octet-stream"
    assert attachments[0].get_content() == payload


# Test 7: 인증 실패
@patch(f"{MODULE}.SMTP_SSL")
def test_auth_error_returns_false(mock_ssl):
    smtp = mock_ssl.return_value.__enter__.return_value
    smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

    assert _notifier().send(["a@example.com"], "s", b"b") is False


# Test 8: 수신 거부
@patch(f"{MODULE}.SMTP_SSL")
def test_smtp_error_returns_false(mock_ssl):
    smtp = mock_ssl.return_value.__enter__.return_value
    smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused({"a@example.com": (550, b"no")})

    assert _notifier().send(["a@example.com"], "s", b"b") is False


# Test 9: 네트워크 에러 (timeout 포함 OSError 전체)
@pytest.mark.parametrize(
    "error",
    [socket.timeout("timed out"), ConnectionRefusedError(111, "refused"), socket.gaierror(-2, "unknown host")],
)
@patch(f"{MODULE}.SMTP_SSL")
def test_network_error_returns_false(mock_ssl, error):
    mock_ssl.side_effect = error

    assert _notifier().send(["a@example.com"], "s", b"b") is False


@patch(f"{MODULE}.SMTP")
def test_starttls_failure_closes_connection(mock_smtp):
    smtp = MagicMock()
    smtp.starttls.side_effect = smtplib.SMTPNotSupportedError("no STARTTLS")
    mock_smtp.return_value = smtp

    assert _notifier(port=25).send(["a@example.com"], "s", b"b") is False
    smtp.close.assert_called_once()


def test_send_without_recipients_returns_false():
    assert _notifier().send([], "s", b"b") is False
