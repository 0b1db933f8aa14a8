"""Notification Port Interface"""

from abc import ABC, abstractmethod
from typing import Sequence


class NotificationPort(ABC):
    """
    Notification Port 인터페이스

    지위: 엔진이 외부로 메시지를 보내는 유일한 통로

    책임:
    - 하나 이상의 주소로 메시지 전송
    - 성공/실패를 bool로 보고 (retry 없음)
    """

    @abstractmethod
    def send(self, to: Sequence[str], subject: str, body: bytes) -> bool:
        """
        메시지 전송

        Args:
            to: 수신자 주소 목록
            subject: 제목
            body: 본문 (opaque bytes)

        Returns:
            bool: 전송 성공 여부
        """
        pass
