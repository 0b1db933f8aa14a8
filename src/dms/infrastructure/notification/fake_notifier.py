"""
FakeNotifier — 테스트용 NotificationPort

목적:
1. 전송 호출 기록 (to, subject, body)
2. 실패 시나리오 재현 (False 반환 / 예외)
3. 실제 SMTP 없이 engine 검증
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from dms.interfaces.notification_port import NotificationPort


@dataclass
class SentMessage:
    """기록된 전송 1건"""
    to: List[str]
    subject: str
    body: bytes


class FakeNotifier(NotificationPort):
    """
    테스트용 NotificationPort

    특징:
    - 모든 send() 호출을 sent에 기록
    - fail_next(n): 다음 n회 send()가 False 반환
    - raise_next(exc): 다음 send()가 exc를 raise
    """

    def __init__(self):
        self.sent: List[SentMessage] = []
        self._fail_remaining = 0
        self._raise_next: Optional[Exception] = None

    def fail_next(self, count: int = 1) -> None:
        """다음 count회 전송 실패 (False 반환)"""
        self._fail_remaining = count

    def raise_next(self, exc: Exception) -> None:
        """다음 전송에서 예외 발생"""
        self._raise_next = exc

    def send(self, to: Sequence[str], subject: str, body: bytes) -> bool:
        if self._raise_next is not None:
            exc, self._raise_next = self._raise_next, None
            raise exc

        if self._fail_remaining > 0:
            self._fail_remaining -= 1
            return False

        self.sent.append(SentMessage(to=list(to), subject=subject, body=bytes(body)))
        return True

    def messages_to(self, address: str) -> List[SentMessage]:
        """특정 주소가 포함된 전송 목록"""
        return [m for m in self.sent if address in m.to]

    @property
    def last(self) -> Optional[SentMessage]:
        return self.sent[-1] if self.sent else None
