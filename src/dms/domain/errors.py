"""
src/dms/domain/errors.py
Switch 에러 분류 (fatal only)

원칙:
1. 설정 오류 → 엔진 시작 거부 (fail-fast)
2. Preflight 실패 → arm 이전에 중단
3. Notification 실패 → 엔진 중단, 프로세스 경계까지 전파 (retry 없음)
4. 코드 불일치 callback은 에러가 아님 (silent no-op)

Exports:
- DeadMansSwitchError: 공통 base
- ConfigInvalidError: 설정 오류 (엔진 시작 불가)
- PreflightError: 메일 서버 도달 불가 / credential 거부
- NotificationError: tick 중 NotificationPort 실패
"""


class DeadMansSwitchError(Exception):
    """Dead man's switch 공통 예외"""

    pass


class ConfigInvalidError(DeadMansSwitchError):
    """
    설정 오류 (엔진 시작 불가)

    - 잘못된 메일 주소
    - interval <= 0
    - recipients 비어 있음
    """

    pass


class PreflightError(DeadMansSwitchError):
    """
    Preflight 실패 (arm 이전 중단)

    - 메일 서버 TCP 연결 실패
    - 테스트 메일 전송 실패 (credential 거부 등)
    """

    pass


class NotificationError(DeadMansSwitchError):
    """
    Tick 중 NotificationPort 실패

    Challenge 재전송 또는 최종 secret 전송 실패 모두 fatal.
    Evaluation loop 중단 후 프로세스 경계까지 전파.
    """

    def __init__(self, message: str, action: str = "", recipients=None):
        super().__init__(message)
        self.action = action
        self.recipients = list(recipients or [])
