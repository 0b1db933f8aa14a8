"""
src/dms/application/switch_engine.py
Switch Engine — Tick loop에서 liveness 판단 (application layer)

원칙:
1. 판단은 tick 경계에서만: callback은 pending_code 해제 + budget 복원만 수행
2. 단일 critical section: phase / pending_code / remaining_forgiveness 읽기/쓰기는 모두 self._lock 안에서
3. Notification I/O는 lock 밖: tick은 lock 안에서 결정/상태 변경 후 lock 해제, 그 다음 전송
4. Notification 실패 → NotificationError (fatal, loop 중단, wait()에서 재전파)
5. Tick 스케줄은 이전 deadline 기준 (drift 누적 없음)

Tick 실행 순서:
[1] stopped / TRIGGERED → skip
[2] pending_code 있음 (이전 challenge 미응답) → budget 1 감소
    - budget < 0 → TRIGGERED, recipients 전체에 secret 전송
    - 그 외 → 새 challenge 전송
[3] pending_code 없음 → 새 challenge 전송 (budget 유지)

Exports:
- SwitchEngine: state machine + ticker thread
- SwitchHandle: start() 반환값 (stop/wait/error)
- TickResult: tick 실행 결과
- TickAction: tick 결정 종류
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from dms.domain.errors import ConfigInvalidError, NotificationError
from dms.domain.ids import DEFAULT_CODE_LENGTH, generate_code, mask_code
from dms.domain.state import EngineState, Phase, SwitchConfig
from dms.infrastructure.logging.switch_event_logger import log_switch_event
from dms.interfaces.notification_port import NotificationPort

logger = logging.getLogger(__name__)

CHALLENGE_SUBJECT = "Dead Man's Switch: are you still there?"
TRIGGER_SUBJECT = "Dead Man's Switch triggered"
DEFAULT_PUBLIC_URL = "http://localhost:9999"


class TickAction(Enum):
    """Tick 결정 종류"""
    CHALLENGE = "CHALLENGE"
    TRIGGER = "TRIGGER"
    IDLE = "IDLE"


@dataclass
class TickResult:
    """Tick 실행 결과"""

    action: TickAction
    phase: Phase
    remaining_forgiveness: int
    pending_code: Optional[str] = None
    missed: bool = False  # 이전 challenge 미응답 여부


class SwitchHandle:
    """
    start() 반환 핸들

    Usage:
        handle = engine.start(config)
        handle.wait()   # NotificationError 발생 시 여기서 raise
        handle.stop()
    """

    def __init__(self, engine: "SwitchEngine"):
        self._engine = engine

    def stop(self) -> None:
        self._engine.stop()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Ticker 종료까지 대기

        Returns:
            bool: timeout 안에 종료되면 True

        Raises:
            NotificationError: ticker가 fatal 에러로 종료된 경우
        """
        return self._engine.wait(timeout)

    @property
    def running(self) -> bool:
        return self._engine.running

    @property
    def error(self) -> Optional[BaseException]:
        return self._engine.error


class SwitchEngine:
    """
    Switch Engine — liveness state machine

    - report_check_in(): CallbackListener가 호출 (임의 스레드, 임의 시점)
    - run_tick(): ticker thread가 interval마다 호출 (테스트에서는 직접 호출)
    - start()/stop(): ticker thread 수명 관리
    """

    def __init__(
        self,
        notifier: NotificationPort,
        code_length: int = DEFAULT_CODE_LENGTH,
        public_url: str = DEFAULT_PUBLIC_URL,
        code_generator: Optional[Callable[[int], str]] = None,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            notifier: NotificationPort 구현 (SmtpNotifier / FakeNotifier)
            code_length: verification code 길이
            public_url: challenge 메일에 들어갈 callback base URL
            code_generator: 코드 생성 함수 (default: generate_code)
            clock: monotonic clock (default: time.monotonic)
            rng: 코드 생성용 RNG (code_generator 미지정 시 사용)
        """
        if code_length < 1:
            raise ConfigInvalidError(f"Code length must be >= 1, got {code_length}")

        self.notifier = notifier
        self.code_length = code_length
        self.public_url = public_url.rstrip("/")
        self._generate = code_generator or (lambda n: generate_code(n, rng=rng))
        self.clock = clock or time.monotonic

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._config: Optional[SwitchConfig] = None
        self._state: Optional[EngineState] = None
        self._stopped = False
        self._error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None
        self.tick_counter = 0

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def arm(self, config: SwitchConfig) -> None:
        """
        EngineState 생성 (ticker 없이)

        Raises:
            ConfigInvalidError: 잘못된 설정 / 이미 arm된 엔진
        """
        if not isinstance(config, SwitchConfig):
            raise ConfigInvalidError("config must be a SwitchConfig")
        config.validate()

        with self._lock:
            if self._state is not None:
                raise ConfigInvalidError("Engine is already armed")
            self._config = config
            self._state = EngineState.initial(config)
            self._stopped = False
            self._stop_event.clear()
            state = self._state.copy()

        log_switch_event(
            "armed",
            state.phase.value,
            {
                "remaining_forgiveness": state.remaining_forgiveness,
                "interval_seconds": config.interval_seconds,
                "recipients_count": len(config.recipients),
            },
        )

    def start(self, config: SwitchConfig) -> SwitchHandle:
        """
        Evaluation loop 시작 (첫 tick은 start 후 1 interval 뒤)

        Raises:
            ConfigInvalidError: interval <= 0, recipients 비어 있음 등
        """
        self.arm(config)

        self._thread = threading.Thread(target=self._tick_loop, name="dms-ticker", daemon=True)
        self._thread.start()

        logger.info(f"✅ Switch armed: tick every {config.interval_seconds:.0f}s, forgiveness {config.forgiveness}")
        return SwitchHandle(self)

    def stop(self) -> None:
        """
        이후 tick 취소 (실행 중인 tick은 완료 후 종료)

        Trigger를 되돌리지 않음.
        """
        with self._lock:
            already = self._stopped
            self._stopped = True
            self._stop_event.set()
            phase = self._state.phase.value if self._state else Phase.ARMED.value

        if not already:
            log_switch_event("stopped", phase, {"tick_counter": self.tick_counter})

        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Ticker 종료까지 대기 (fatal 에러는 재전파)
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                return False

        if self._error is not None:
            raise self._error
        return True

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    # ========================================================================
    # State access
    # ========================================================================

    def snapshot(self) -> Optional[EngineState]:
        """현재 상태 복사본 (lock 안에서 복사)"""
        with self._lock:
            return self._state.copy() if self._state is not None else None

    @property
    def phase(self) -> Optional[Phase]:
        state = self.snapshot()
        return state.phase if state else None

    @property
    def pending_code(self) -> Optional[str]:
        state = self.snapshot()
        return state.pending_code if state else None

    @property
    def remaining_forgiveness(self) -> Optional[int]:
        state = self.snapshot()
        return state.remaining_forgiveness if state else None

    # ========================================================================
    # Check-in (CallbackListener → engine)
    # ========================================================================

    def report_check_in(self, code: str) -> bool:
        """
        Check-in 처리

        Args:
            code: CallbackListener가 정규화한 token (그대로 비교)

        Returns:
            bool: ARMED 상태이고 pending_code와 정확히 일치하면 True
                  (pending_code 해제 + budget 초기값 복원)
        """
        with self._lock:
            state = self._state
            if state is None or state.phase != Phase.ARMED or not state.pending_code:
                accepted = False
            elif code != state.pending_code:
                accepted = False
            else:
                state.pending_code = None
                state.remaining_forgiveness = self._config.forgiveness
                accepted = True
            snapshot = state.copy() if state is not None else None

        if snapshot is None:
            return False

        if accepted:
            log_switch_event(
                "check_in_accepted",
                snapshot.phase.value,
                {"remaining_forgiveness": snapshot.remaining_forgiveness},
            )
        else:
            log_switch_event("check_in_rejected", snapshot.phase.value, {"token": mask_code(code)})

        return accepted

    # ========================================================================
    # Tick
    # ========================================================================

    def run_tick(self) -> TickResult:
        """
        Tick 1회 실행

        Returns:
            TickResult: 이번 tick의 결정

        Raises:
            NotificationError: challenge/secret 전송 실패 (fatal)
        """
        with self._lock:
            state = self._state
            if state is None:
                raise ConfigInvalidError("Engine is not armed")

            self.tick_counter += 1

            # [1] stopped / TRIGGERED → skip
            if self._stopped or state.phase == Phase.TRIGGERED:
                result = TickResult(
                    action=TickAction.IDLE,
                    phase=state.phase,
                    remaining_forgiveness=state.remaining_forgiveness,
                    pending_code=state.pending_code,
                )
            else:
                result = self._decide(state)
            config = self._config

        if result.action == TickAction.IDLE:
            log_switch_event("tick_skipped", result.phase.value, {"tick_counter": self.tick_counter})
        elif result.action == TickAction.TRIGGER:
            # lock 해제 후 전송
            self._send_secret(config, result)
        else:
            self._send_challenge(config, result)

        return result

    def _decide(self, state: EngineState) -> TickResult:
        """
        Tick 결정 + 상태 변경 (caller가 self._lock 보유)
        """
        missed = state.pending_code is not None

        # [2] 이전 challenge 미응답 → budget 감소
        if missed:
            state.remaining_forgiveness -= 1

        if state.remaining_forgiveness < 0:
            state.phase = Phase.TRIGGERED
            state.pending_code = None
            action = TickAction.TRIGGER
        else:
            # [3] 새 challenge
            state.pending_code = self._generate(self.code_length)
            action = TickAction.CHALLENGE

        return TickResult(
            action=action,
            phase=state.phase,
            remaining_forgiveness=state.remaining_forgiveness,
            pending_code=state.pending_code,
            missed=missed,
        )

    def _send_challenge(self, config: SwitchConfig, result: TickResult) -> None:
        """새 코드를 운영자 본인에게 전송"""
        body = (
            "Your Dead Man's Switch here, are you still there? "
            f"Make a request: {self.public_url}/{result.pending_code}"
        ).encode("utf-8")

        self._notify("challenge", [config.operator_address], CHALLENGE_SUBJECT, body, result)

        log_switch_event(
            "challenge_issued",
            result.phase.value,
            {
                "code": mask_code(result.pending_code),
                "missed": result.missed,
                "remaining_forgiveness": result.remaining_forgiveness,
                "tick_counter": self.tick_counter,
            },
        )

    def _send_secret(self, config: SwitchConfig, result: TickResult) -> None:
        """Secret을 recipients 전체에 1회 전송"""
        header = f"{config.operator_address}'s Dead Man's Switch here, the secret is\n".encode("utf-8")

        self._notify("trigger", list(config.recipients), TRIGGER_SUBJECT, header + config.secret, result)

        log_switch_event(
            "triggered",
            result.phase.value,
            {
                "recipients_count": len(config.recipients),
                "tick_counter": self.tick_counter,
            },
        )

    def _notify(self, action: str, to, subject: str, body: bytes, result: TickResult) -> None:
        """
        NotificationPort 호출 (실패 → NotificationError)
        """
        try:
            ok = self.notifier.send(to, subject, body)
        except Exception as e:
            self._fail(action, to, result)
            raise NotificationError(
                f"Notification failed during {action}: {type(e).__name__}: {e}",
                action=action,
                recipients=to,
            ) from e

        if not ok:
            self._fail(action, to, result)
            raise NotificationError(
                f"Notification failed during {action}",
                action=action,
                recipients=to,
            )

    def _fail(self, action: str, to, result: TickResult) -> None:
        """전송 실패 → 엔진 중단 (이후 tick 없음)"""
        with self._lock:
            self._stopped = True
            self._stop_event.set()

        log_switch_event(
            "notification_failed",
            result.phase.value,
            {"action": action, "recipients_count": len(to), "tick_counter": self.tick_counter},
        )

    # ========================================================================
    # Ticker thread
    # ========================================================================

    def _tick_loop(self) -> None:
        """
        Ticker loop (background thread)

        다음 deadline = 이전 deadline + interval (누적 drift 없음)
        """
        interval = self._config.interval_seconds
        next_deadline = self.clock() + interval

        while True:
            delay = max(0.0, next_deadline - self.clock())
            if self._stop_event.wait(delay):
                break

            try:
                result = self.run_tick()
            except NotificationError as e:
                logger.critical(f"🚨 Switch stopped: {e}")
                self._error = e
                break
            except Exception as e:
                logger.critical(f"🚨 Switch crashed: {type(e).__name__}: {e}")
                self._error = e
                with self._lock:
                    self._stopped = True
                    self._stop_event.set()
                break

            if result.phase == Phase.TRIGGERED:
                logger.info("Switch triggered, evaluation loop finished")
                break

            next_deadline += interval
            # 긴 중단(절전 등) 후 밀린 tick을 연속 실행하지 않음
            now = self.clock()
            if next_deadline < now:
                missed_slots = int((now - next_deadline) // interval) + 1
                next_deadline += missed_slots * interval
