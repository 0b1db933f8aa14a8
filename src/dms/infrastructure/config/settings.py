"""
src/dms/infrastructure/config/settings.py
Settings Loader — YAML + 환경변수(.env) + CLI 병합

우선순위 (높은 순):
1. CLI 인자
2. 환경변수 (DMS_*, .env는 main에서 load_dotenv()로 로드)
3. YAML 파일 (default: config/switch.yaml, 없으면 skip)
4. 기본값

Exports:
- AppSettings / SmtpSettings / ListenerSettings: 병합 결과 (불변)
- load_settings(): 병합 실행
- load_yaml_config(): YAML 파일 로드
"""

import logging
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from dms.domain.errors import ConfigInvalidError
from dms.domain.ids import DEFAULT_CODE_LENGTH
from dms.domain.state import SwitchConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/switch.yaml")
DEFAULT_INTERVAL_DAYS = 1.0
DEFAULT_FORGIVE = 1
DEFAULT_SMTP_PORT = 465
DEFAULT_SMTP_TIMEOUT = 10.0
DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_LISTEN_PORT = 9999
SECONDS_PER_DAY = 24 * 3600

# 환경변수 → (section, key)
ENV_KEYS = {
    "DMS_EMAIL": ("switch", "email"),
    "DMS_PASSWORD": ("switch", "password"),
    "DMS_RECIPIENTS": ("switch", "recipients"),
    "DMS_INTERVAL_DAYS": ("switch", "interval_days"),
    "DMS_FORGIVE": ("switch", "forgive"),
    "DMS_CODE_LENGTH": ("switch", "code_length"),
    "DMS_MX_SERVER": ("smtp", "server"),
    "DMS_MX_PORT": ("smtp", "port"),
    "DMS_SMTP_TIMEOUT": ("smtp", "timeout_seconds"),
    "DMS_LISTEN_HOST": ("listener", "host"),
    "DMS_LISTEN_PORT": ("listener", "port"),
    "DMS_PUBLIC_URL": ("listener", "public_url"),
}


@dataclass(frozen=True)
class SmtpSettings:
    """SMTP 서버 설정"""
    server: str = ""
    port: int = DEFAULT_SMTP_PORT
    timeout_seconds: float = DEFAULT_SMTP_TIMEOUT


@dataclass(frozen=True)
class ListenerSettings:
    """Callback listener 설정"""
    host: str = DEFAULT_LISTEN_HOST
    port: int = DEFAULT_LISTEN_PORT
    public_url: str = ""

    @property
    def callback_base_url(self) -> str:
        """Challenge 메일에 넣을 URL (public_url 없으면 localhost:port)"""
        if self.public_url:
            return self.public_url.rstrip("/")
        return f"http://localhost:{self.port}"


@dataclass(frozen=True)
class AppSettings:
    """병합된 전체 설정"""
    email: str = ""
    password: str = field(default="", repr=False)
    recipients: Tuple[str, ...] = ()
    interval_days: float = DEFAULT_INTERVAL_DAYS
    forgive: int = DEFAULT_FORGIVE
    code_length: int = DEFAULT_CODE_LENGTH
    smtp: SmtpSettings = field(default_factory=SmtpSettings)
    listener: ListenerSettings = field(default_factory=ListenerSettings)

    @property
    def interval_seconds(self) -> float:
        return self.interval_days * SECONDS_PER_DAY

    def to_switch_config(self, secret: bytes) -> SwitchConfig:
        """
        SwitchConfig 생성

        Raises:
            ConfigInvalidError: SwitchConfig 검증 실패
        """
        return SwitchConfig(
            operator_address=self.email,
            recipients=self.recipients,
            interval_seconds=self.interval_seconds,
            forgiveness=self.forgive,
            secret=secret,
        )


def load_yaml_config(path: Optional[Union[str, Path]] = None, required: bool = False) -> Dict[str, Any]:
    """
    YAML 설정 로드

    Args:
        path: YAML 경로 (default: config/switch.yaml)
        required: True면 파일이 없을 때 ConfigInvalidError

    Returns:
        dict: {"switch": {...}, "smtp": {...}, "listener": {...}}
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not path.exists():
        if required:
            raise ConfigInvalidError(f"Config file not found: {path}")
        logger.debug(f"Config file not found, using defaults: {path}")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigInvalidError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigInvalidError(f"Config file {path} must contain a mapping")

    for section in ("switch", "smtp", "listener"):
        if section in data and not isinstance(data[section], dict):
            raise ConfigInvalidError(f"Section '{section}' in {path} must be a mapping")

    return data


def _env_layer(environ: Mapping[str, str]) -> Dict[str, Dict[str, Any]]:
    layer: Dict[str, Dict[str, Any]] = {}
    for env_key, (section, key) in ENV_KEYS.items():
        value = environ.get(env_key)
        if value is not None and value != "":
            layer.setdefault(section, {})[key] = value
    return layer


def _merge(*layers: Mapping[str, Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """뒤 layer가 앞 layer를 덮어씀 (None 값은 무시)"""
    merged: Dict[str, Dict[str, Any]] = {"switch": {}, "smtp": {}, "listener": {}}
    for layer in layers:
        for section, values in (layer or {}).items():
            if section not in merged or not values:
                continue
            for key, value in values.items():
                if value is not None:
                    merged[section][key] = value
    return merged


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigInvalidError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigInvalidError(f"{name} must be an integer, got {value!r}")


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ConfigInvalidError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigInvalidError(f"{name} must be a number, got {value!r}")


def _as_recipients(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return tuple(str(item).strip() for item in items if str(item).strip())


def load_settings(
    cli: Optional[Mapping[str, Mapping[str, Any]]] = None,
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """
    설정 병합 (defaults < YAML < env < CLI)

    Args:
        cli: CLI 값 {"switch": {...}, "smtp": {...}, "listener": {...}} (None 값은 미지정)
        config_path: YAML 경로 (지정 시 파일 필수)
        environ: 환경변수 mapping (default: os.environ)

    Returns:
        AppSettings

    Raises:
        ConfigInvalidError: 숫자 변환 실패, 음수 interval/forgive, 잘못된 port
    """
    environ = environ if environ is not None else os.environ
    yaml_layer = load_yaml_config(config_path, required=config_path is not None)
    merged = _merge(yaml_layer, _env_layer(environ), cli or {})

    sw, smtp, listener = merged["switch"], merged["smtp"], merged["listener"]

    interval_days = _as_float(sw.get("interval_days", DEFAULT_INTERVAL_DAYS), "interval")
    if not math.isfinite(interval_days) or interval_days < 0:
        raise ConfigInvalidError(f"Interval must be a positive finite number, got {interval_days}")
    if interval_days == 0:
        # 0 = 기본값 사용
        interval_days = DEFAULT_INTERVAL_DAYS

    forgive = _as_int(sw.get("forgive", DEFAULT_FORGIVE), "forgive")
    if forgive < 0:
        raise ConfigInvalidError(f"Forgive must be >= 0, got {forgive}")

    code_length = _as_int(sw.get("code_length", DEFAULT_CODE_LENGTH), "code_length")
    if code_length < 1:
        raise ConfigInvalidError(f"code_length must be >= 1, got {code_length}")

    smtp_port = _as_int(smtp.get("port", DEFAULT_SMTP_PORT), "mxport")
    listen_port = _as_int(listener.get("port", DEFAULT_LISTEN_PORT), "listen port")
    for name, port in (("mxport", smtp_port), ("listen port", listen_port)):
        if not 0 < port < 65536:
            raise ConfigInvalidError(f"{name} out of range: {port}")

    return AppSettings(
        email=str(sw.get("email", "") or "").strip(),
        password=str(sw.get("password", "") or ""),
        recipients=_as_recipients(sw.get("recipients")),
        interval_days=interval_days,
        forgive=forgive,
        code_length=code_length,
        smtp=SmtpSettings(
            server=str(smtp.get("server", "") or "").strip(),
            port=smtp_port,
            timeout_seconds=_as_float(smtp.get("timeout_seconds", DEFAULT_SMTP_TIMEOUT), "smtp timeout"),
        ),
        listener=ListenerSettings(
            host=str(listener.get("host", DEFAULT_LISTEN_HOST)),
            port=listen_port,
            public_url=str(listener.get("public_url", "") or "").strip(),
        ),
    )
