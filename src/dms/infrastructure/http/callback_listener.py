"""
src/dms/infrastructure/http/callback_listener.py
Callback Listener — check-in 수신 HTTP endpoint

원칙:
1. 단일 경로: GET /{token} → engine.report_check_in(token), 정규화는 여기서 1회만
2. 인증 없음 (정확한 token 일치가 유일한 검증)
3. 응답은 항상 200 + 빈 body (성공/실패 구분 없음)
4. Sync handler → FastAPI threadpool에서 병렬 처리, 상태 변경은 engine lock에서 직렬화
5. 서버는 background thread (engine ticker와 서로 block 하지 않음)

Exports:
- create_app(): FastAPI app 생성
- CallbackListener: uvicorn 서버 thread 관리 (start/stop)
"""

import logging
import threading
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response

from dms.application.switch_engine import SwitchEngine
from dms.domain.ids import normalize_token

logger = logging.getLogger(__name__)

DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_LISTEN_PORT = 9999


def create_app(engine: SwitchEngine) -> FastAPI:
    """
    Check-in FastAPI app 생성

    Args:
        engine: check-in을 전달할 SwitchEngine

    Returns:
        FastAPI: 모든 경로/메서드를 받는 단일 handler app
    """
    app = FastAPI(
        title="dms callback",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.api_route("/{token:path}", methods=["GET", "POST", "HEAD"])
    def check_in(request: Request) -> Response:
        # path param은 leading '/'를 이미 제거하므로 raw path에서 1회 정규화
        accepted = engine.report_check_in(normalize_token(request.url.path))
        client = request.client.host if request.client else "unknown"
        logger.debug(f"Check-in request from {client}: accepted={accepted}")
        return Response(status_code=200)

    return app


class CallbackListener:
    """
    uvicorn 서버를 background thread로 실행

    Usage:
        listener = CallbackListener(engine, host="0.0.0.0", port=9999)
        listener.start()
        ...
        listener.stop()
    """

    def __init__(
        self,
        engine: SwitchEngine,
        host: str = DEFAULT_LISTEN_HOST,
        port: int = DEFAULT_LISTEN_PORT,
        log_level: str = "warning",
    ):
        self.engine = engine
        self.host = host
        self.port = port
        self.app = create_app(engine)

        self._config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level=log_level,
            access_log=False,
        )
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    def on_request(self, token: str) -> bool:
        """HTTP 없이 check-in 전달 (token 정규화 후 engine에 위임)"""
        return self.engine.report_check_in(normalize_token(token))

    def start(self) -> None:
        """
        서버 시작 (background thread)
        """
        if self._thread is not None and self._thread.is_alive():
            return

        # uvicorn은 main thread가 아니면 signal handler를 설치하지 않음 (시그널은 main에서 처리)
        self._server = uvicorn.Server(self._config)

        self._thread = threading.Thread(target=self._server.run, name="dms-listener", daemon=True)
        self._thread.start()
        logger.info(f"✅ Callback listener on http://{self.host}:{self.port}/<code>")

    def stop(self, timeout: float = 5.0) -> None:
        """
        서버 종료 (thread join timeout=5.0)
        """
        if self._server is not None:
            self._server.should_exit = True

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)

        self._server = None
        self._thread = None

    def wait_started(self, timeout: float = 5.0, poll: float = 0.05) -> bool:
        """
        서버 bind 완료까지 대기

        Returns:
            bool: timeout 안에 시작되면 True (port 사용 중 등으로 thread가 죽으면 False)
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.started:
                return True
            if not self.is_running():
                return False
            time.sleep(poll)
        return self.started

    @property
    def started(self) -> bool:
        return bool(self._server is not None and self._server.started)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
