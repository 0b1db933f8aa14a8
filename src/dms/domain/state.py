"""
Domain State Models

Switch state machine 정의 (Armed → Triggered, terminal)
"""

import math
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dms.domain.errors import ConfigInvalidError
from dms.domain.ids import is_valid_address

__all__ = [
    'Phase',
    'SwitchConfig',
    'EngineState',
]


class Phase(Enum):
    """
    Switch Phase

    2가지 상태만 존재:
    - ARMED: check-in 대기/감시 중
    - TRIGGERED: secret 전송 완료 (terminal, 이후 tick/callback 무시)
    """
    ARMED = "ARMED"
    TRIGGERED = "TRIGGERED"


@dataclass(frozen=True)
class SwitchConfig:
    """
    Switch 설정 (생성 후 불변)

    - operator_address: 운영자 메일 (challenge 수신)
    - recipients: secret 수신자 목록 (비어 있으면 안 됨)
    - interval_seconds: tick 간격 (> 0)
    - forgiveness: 허용 miss 횟수 (>= 0)
    - secret: 전송할 payload (opaque bytes)
    """
    operator_address: str
    recipients: Tuple[str, ...]
    interval_seconds: float
    forgiveness: int
    secret: bytes = field(repr=False)

    def __post_init__(self):
        # list로 들어와도 tuple로 고정 (불변성)
        if not isinstance(self.recipients, tuple):
            object.__setattr__(self, "recipients", tuple(self.recipients or ()))
        if isinstance(self.secret, bytearray):
            object.__setattr__(self, "secret", bytes(self.secret))
        self.validate()

    def validate(self) -> None:
        """
        설정 검증 (fail-fast)

        Raises:
            ConfigInvalidError: 잘못된 주소, 빈 recipients, interval <= 0 또는 nan/inf,
                                음수/비정수 forgiveness, bytes 아닌 secret
        """
        if not is_valid_address(self.operator_address):
            raise ConfigInvalidError(f"Invalid operator address: {self.operator_address!r}")

        if len(self.recipients) == 0:
            raise ConfigInvalidError("Recipient list must not be empty")

        for recipient in self.recipients:
            if not is_valid_address(recipient):
                raise ConfigInvalidError(f"Invalid recipient address: {recipient!r}")

        if isinstance(self.interval_seconds, bool) or not isinstance(self.interval_seconds, (int, float)):
            raise ConfigInvalidError(f"Interval must be a number, got {self.interval_seconds!r}")
        if not math.isfinite(self.interval_seconds) or self.interval_seconds <= 0:
            raise ConfigInvalidError(f"Interval must be positive, got {self.interval_seconds}")

        if isinstance(self.forgiveness, bool) or not isinstance(self.forgiveness, int):
            raise ConfigInvalidError(f"Forgiveness must be an integer, got {self.forgiveness!r}")
        if self.forgiveness < 0:
            raise ConfigInvalidError(f"Forgiveness must be >= 0, got {self.forgiveness}")

        if not isinstance(self.secret, (bytes, bytearray)):
            raise ConfigInvalidError("Secret must be bytes")


@dataclass
class EngineState:
    """
    Engine 상태 (engine lock 안에서만 읽기/쓰기)

    - remaining_forgiveness: miss마다 1 감소, 음수가 되면 trigger
    - pending_code: 현재 유효한 코드 (None이면 대기 중인 challenge 없음)
    - phase: ARMED or TRIGGERED
    """
    remaining_forgiveness: int
    pending_code: Optional[str] = None
    phase: Phase = Phase.ARMED

    @classmethod
    def initial(cls, config: SwitchConfig) -> "EngineState":
        """시작 상태: ARMED, 전체 budget, 코드 없음"""
        return cls(remaining_forgiveness=config.forgiveness)

    @property
    def is_triggered(self) -> bool:
        return self.phase == Phase.TRIGGERED

    def copy(self) -> "EngineState":
        return EngineState(
            remaining_forgiveness=self.remaining_forgiveness,
            pending_code=self.pending_code,
            phase=self.phase,
        )
