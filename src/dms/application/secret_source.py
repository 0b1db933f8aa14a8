"""
src/dms/application/secret_source.py
Secret 입력 (terminal 또는 파일, sentinel "EOF" 라인까지)

- read_secret(): stdin 등 stream에서 "EOF" 라인까지 읽기
- read_secret_file(): 파일에서 같은 규칙으로 읽기 (binary, opaque bytes 그대로)

엔진 start 이전 1회만 호출, 결과는 SwitchConfig.secret (bytes)
"""

import sys
from pathlib import Path
from typing import Iterable, Optional, TextIO, Union

from dms.domain.errors import ConfigInvalidError

SENTINEL = "EOF"
PROMPT = "Enter Lines, reading until ^EOF<enter>:"


def collect_lines(lines: Iterable[Union[str, bytes]], sentinel: str = SENTINEL) -> bytes:
    """
    sentinel 라인 전까지 모아서 b'\\n'으로 join

    Args:
        lines: str 라인 (terminal) 또는 bytes 라인 (binary 파일)
        sentinel: 종료 라인

    Raises:
        ConfigInvalidError: 빈 secret
    """
    marker = sentinel.encode("utf-8")
    collected = []
    for line in lines:
        if isinstance(line, str):
            line = line.encode("utf-8")
        line = line.rstrip(b"\r\n")
        if line.strip() == marker:
            break
        collected.append(line)

    secret = b"\n".join(collected)
    if not secret.strip():
        raise ConfigInvalidError("Secret must not be empty")

    return secret


def read_secret(
    stream: Optional[TextIO] = None,
    out: Optional[TextIO] = None,
    sentinel: str = SENTINEL,
) -> bytes:
    """
    Terminal에서 secret 입력

    Args:
        stream: 입력 stream (default: sys.stdin)
        out: 안내 출력 stream (default: sys.stdout)
        sentinel: 종료 라인 (default: "EOF")

    Raises:
        ConfigInvalidError: 빈 secret / terminal encoding으로 decode 불가
    """
    stream = stream if stream is not None else sys.stdin
    out = out if out is not None else sys.stdout

    print(PROMPT, file=out)
    try:
        secret = collect_lines(stream, sentinel=sentinel)
    except UnicodeDecodeError as e:
        raise ConfigInvalidError(f"Secret input is not valid text, use --secret-file for binary data: {e}") from e
    print("Secret saved!", file=out)
    return secret


def read_secret_file(path: Union[str, Path], sentinel: str = SENTINEL) -> bytes:
    """
    파일에서 secret 읽기 (binary mode, sentinel 라인 이후는 무시)

    Raises:
        ConfigInvalidError: 파일 없음 / 읽기 실패 / 빈 secret
    """
    path = Path(path)
    try:
        with path.open("rb") as f:
            return collect_lines(f, sentinel=sentinel)
    except FileNotFoundError:
        raise ConfigInvalidError(f"Secret file not found: {path}")
    except OSError as e:
        raise ConfigInvalidError(f"Secret file {path} cannot be read: {e}") from e
