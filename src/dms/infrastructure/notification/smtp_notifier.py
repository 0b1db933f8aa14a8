"""
src/dms/infrastructure/notification/smtp_notifier.py

SMTP 메일 전송 (Infrastructure Layer, NotificationPort 구현)

운영자 계정으로 메일 전송
- Challenge 코드 전송 (운영자 본인에게)
- Secret 전송 (recipients 전체에게)
- Preflight 테스트 메일

특징:
- 환경변수에서 계정/서버 자동 로드 (DMS_EMAIL, DMS_PASSWORD, DMS_MX_SERVER, DMS_MX_PORT)
- 465 → implicit TLS (SMTP_SSL), 그 외 → STARTTLS
- 전송 실패 시 로그 + False 반환 (retry 없음, fatal 판단은 engine 몫)
- UTF-8로 decode 안 되는 body는 첨부파일로 전송
"""

import os
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Sequence

from dms.interfaces.notification_port import NotificationPort


logger = logging.getLogger(__name__)

DEFAULT_SMTP_PORT = 465
DEFAULT_SMTP_TIMEOUT = 10.0
IMPLICIT_TLS_PORT = 465


class SmtpNotifier(NotificationPort):
    """
    SMTP를 통한 메일 전송

    특징:
    - 매 전송마다 연결 → login → send → quit (장기 연결 유지 안 함)
    - 실패 시 로그만 출력, 예외 전파 안 함 (bool 반환)
    """

    def __init__(
        self,
        user_email: Optional[str] = None,
        password: Optional[str] = None,
        server: Optional[str] = None,
        port: Optional[int] = None,
        timeout: float = DEFAULT_SMTP_TIMEOUT,
    ):
        """
        Args:
            user_email: 발신 계정 (default: 환경변수 DMS_EMAIL)
            password: 계정 비밀번호/앱 비밀번호 (default: 환경변수 DMS_PASSWORD)
            server: SMTP 서버 (default: 환경변수 DMS_MX_SERVER)
            port: SMTP 포트 (default: 환경변수 DMS_MX_PORT, 없으면 465)
            timeout: 연결 타임아웃 (초)
        """
        self.user_email = user_email or os.getenv("DMS_EMAIL")
        self.password = password or os.getenv("DMS_PASSWORD")
        self.server = server or os.getenv("DMS_MX_SERVER")
        self.port = int(port or os.getenv("DMS_MX_PORT") or DEFAULT_SMTP_PORT)
        self.timeout = timeout

        if not self.enabled:
            logger.warning("SmtpNotifier disabled: email, password or server missing")

    @property
    def enabled(self) -> bool:
        """계정/비밀번호/서버가 모두 있으면 True"""
        return bool(self.user_email and self.password and self.server)

    @property
    def target(self) -> str:
        return f"{self.server}:{self.port}"

    def send(self, to: Sequence[str], subject: str, body: bytes) -> bool:
        """
        메일 전송

        Args:
            to: 수신자 목록 (한 메시지의 To 헤더에 모두 포함)
            subject: 제목
            body: 본문 bytes

        Returns:
            bool: 전송 성공 여부 (실패 시 로그만 출력)
        """
        if not self.enabled:
            logger.error("SMTP send skipped: notifier disabled")
            return False

        recipients = [addr for addr in to if addr]
        if not recipients:
            logger.error("SMTP send skipped: no recipients")
            return False

        msg = self._build_message(recipients, subject, body)

        try:
            with self._connect() as smtp:
                smtp.login(self.user_email, self.password)
                smtp.send_message(msg, from_addr=self.user_email, to_addrs=recipients)
            logger.debug(f"Mail sent to {len(recipients)} recipient(s): {subject}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for {self.user_email}: {e}")
            return False

        except smtplib.SMTPException as e:
            logger.error(f"SMTP error: {type(e).__name__}: {e}")
            return False

        except OSError as e:
            logger.error(f"SMTP network error ({self.target}): {e}")
            return False

    def _connect(self) -> smtplib.SMTP:
        """
        SMTP 연결 생성 (internal)

        465 → SMTP_SSL (implicit TLS), 그 외 → SMTP + STARTTLS
        """
        if self.port == IMPLICIT_TLS_PORT:
            return smtplib.SMTP_SSL(self.server, self.port, timeout=self.timeout)

        smtp = smtplib.SMTP(self.server, self.port, timeout=self.timeout)
        try:
            smtp.starttls()
        except smtplib.SMTPException:
            smtp.close()
            raise
        return smtp

    def _build_message(self, recipients: Sequence[str], subject: str, body: bytes) -> EmailMessage:
        """
        EmailMessage 생성 (internal)

        UTF-8 텍스트 → text/plain 본문
        바이너리 → 짧은 안내문 + application/octet-stream 첨부
        """
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.user_email
        msg["To"] = ", ".join(recipients)

        try:
            text = bytes(body).decode("utf-8")
            msg.set_content(text)
        except UnicodeDecodeError:
            msg.set_content("The payload of this message is attached as a binary file.")
            msg.add_attachment(
                bytes(body),
                maintype="application",
                subtype="octet-stream",
                filename="secret.bin",
            )

        return msg
