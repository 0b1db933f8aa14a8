"""
src/dms/infrastructure/notification/__init__.py
Notification Infrastructure (SMTP, Fake)

Exports:
- SmtpNotifier: 실제 메일 전송
- FakeNotifier: 테스트용 NotificationPort
"""

from .smtp_notifier import SmtpNotifier
from .fake_notifier import FakeNotifier, SentMessage

__all__ = ["SmtpNotifier", "FakeNotifier", "SentMessage"]
