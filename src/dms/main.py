"""
src/dms/main.py
Dead Man's Switch 실행 스크립트 (프로세스 경계)

흐름:
[1] .env 로드 + 인자 파싱 + logging 설정
[2] Banner
[3] 설정 병합 (CLI > env > YAML > 기본값)
[4] Preflight (주소 / TCP / 테스트 메일)
[5] Secret 입력 (terminal 또는 --secret-file)
[6] Callback listener + engine 시작, 종료까지 대기

Exit codes:
- 0: trigger 완료 또는 signal로 정상 종료
- 2: ConfigInvalidError
- 3: PreflightError
- 4: NotificationError

실행:
    dms --email me@example.com --password APP_PASS --mxserv smtp.example.com \\
        --recipients a@example.com,b@example.com --interval 1 --forgive 1
"""

import argparse
import logging
import os
import signal
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from dms.application.preflight import run_preflight
from dms.application.secret_source import read_secret, read_secret_file
from dms.application.switch_engine import SwitchEngine
from dms.domain.errors import ConfigInvalidError, NotificationError, PreflightError
from dms.infrastructure.config.settings import AppSettings, load_settings
from dms.infrastructure.http.callback_listener import CallbackListener
from dms.infrastructure.notification.smtp_notifier import SmtpNotifier

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_PREFLIGHT = 3
EXIT_NOTIFICATION = 4

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def banner() -> None:
    """시작 banner 출력"""
    print("            __              ")
    print("       ____/ /___ ___  _____")
    print("      / __  / __ `__ \\/ ___/")
    print("     / /_/ / / / / / (__  ) ")
    print("     \\__,_/_/ /_/ /_/____/  \n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dms",
        description="Activate a Dead Man's Switch. Your reason, your business :)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --email me@example.com --mxserv smtp.example.com --recipients a@x.org,b@y.org
  %(prog)s --interval 7 --forgive 2 --secret-file secret.txt
  %(prog)s --config config/switch.yaml

Environment variables (.env supported):
  DMS_EMAIL, DMS_PASSWORD, DMS_MX_SERVER, DMS_MX_PORT, DMS_RECIPIENTS,
  DMS_INTERVAL_DAYS, DMS_FORGIVE, DMS_LISTEN_HOST, DMS_LISTEN_PORT,
  DMS_PUBLIC_URL, DMS_LOG_LEVEL
        """,
    )

    # 운영자 계정 (challenge 메일 수신 + 발신 계정)
    parser.add_argument("--email", help="Email of the owner")
    parser.add_argument("--password", help="One Time Password for Email sending")

    # SMTP 서버
    parser.add_argument("--mxserv", help="Mail Server for sending emails")
    parser.add_argument("--mxport", type=int, help="Port for email sending (default: 465)")

    # secret 수신자
    parser.add_argument("--recipients", help="Comma-separated list of recipients")

    # interval(일) 마다 challenge, forgive 횟수만큼 miss 허용
    parser.add_argument("--interval", type=float, help="Interval (days) for the switch (0 = 1 day)")
    parser.add_argument("--forgive", type=int, help="Tries before actually sending emails (default: 1)")

    # callback listener
    parser.add_argument("--listen-host", help="Callback listener host (default: 0.0.0.0)")
    parser.add_argument("--listen-port", type=int, help="Callback listener port (default: 9999)")
    parser.add_argument("--public-url", help="Base URL put in challenge mails (default: http://localhost:<port>)")

    parser.add_argument("--secret-file", help="Read the secret from a file instead of the terminal")
    parser.add_argument("--config", help="YAML config file (default: config/switch.yaml if present)")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    parser.add_argument("--log-file", help="Also write logs to this file")

    return parser


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=(level or "INFO").upper(),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def cli_overrides(args: argparse.Namespace) -> Dict[str, Dict[str, Any]]:
    """argparse 결과 → load_settings() CLI layer"""
    return {
        "switch": {
            "email": args.email,
            "password": args.password,
            "recipients": args.recipients,
            "interval_days": args.interval,
            "forgive": args.forgive,
        },
        "smtp": {
            "server": args.mxserv,
            "port": args.mxport,
        },
        "listener": {
            "host": args.listen_host,
            "port": args.listen_port,
            "public_url": args.public_url,
        },
    }


def build_notifier(settings: AppSettings) -> SmtpNotifier:
    return SmtpNotifier(
        user_email=settings.email,
        password=settings.password,
        server=settings.smtp.server,
        port=settings.smtp.port,
        timeout=settings.smtp.timeout_seconds,
    )


def run(settings: AppSettings, secret_file: Optional[str] = None) -> int:
    """
    Preflight → secret → listener + engine → 대기

    Returns:
        int: exit code

    Raises:
        ConfigInvalidError / PreflightError / NotificationError
    """
    notifier = build_notifier(settings)

    # [4] Preflight (EngineState 생성 이전)
    run_preflight(
        operator_address=settings.email,
        recipients=settings.recipients,
        server=settings.smtp.server,
        port=settings.smtp.port,
        notifier=notifier,
    )

    # [5] Secret 입력
    secret = read_secret_file(secret_file) if secret_file else read_secret()
    config = settings.to_switch_config(secret)

    # [6] Listener + Engine
    engine = SwitchEngine(
        notifier=notifier,
        code_length=settings.code_length,
        public_url=settings.listener.callback_base_url,
    )
    listener = CallbackListener(engine, host=settings.listener.host, port=settings.listener.port)
    listener.start()
    if not listener.wait_started():
        listener.stop()
        raise PreflightError(
            f"Callback listener failed to start on {settings.listener.host}:{settings.listener.port}"
        )

    handle = engine.start(config)

    def _on_signal(signum, frame):
        logger.warning(f"⚠️ Signal {signum} received, stopping switch")
        handle.stop()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    try:
        # timeout 없는 join은 signal을 늦게 처리할 수 있어 주기적으로 깨어남
        while not handle.wait(timeout=1.0):
            pass
    finally:
        listener.stop()

    state = engine.snapshot()
    logger.info(f"Switch finished in phase {state.phase.value if state else 'UNKNOWN'}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    load_dotenv()

    args = build_parser().parse_args(argv)

    setup_logging(args.log_level or os.getenv("DMS_LOG_LEVEL"), args.log_file)

    banner()

    try:
        settings = load_settings(cli=cli_overrides(args), config_path=args.config)
        return run(settings, secret_file=args.secret_file)

    except ConfigInvalidError as e:
        logger.error(f"❌ Invalid configuration: {e}")
        return EXIT_CONFIG

    except PreflightError as e:
        logger.error(f"❌ Preflight failed: {e}")
        return EXIT_PREFLIGHT

    except NotificationError as e:
        logger.critical(f"🚨 Notification failed, switch aborted: {e}")
        return EXIT_NOTIFICATION


if __name__ == "__main__":
    sys.exit(main())
