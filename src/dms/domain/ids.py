"""
src/dms/domain/ids.py
Verification code 생성 및 검증 (CodeGenerator)

Purpose:
- generate_code(): 62자 알파벳(a-z, A-Z, 0-9) 기반 일회용 코드 생성
- normalize_token(): 요청 경로에서 받은 token 정규화 (leading '/' 제거)
- mask_code(): 로그용 코드 마스킹
- is_valid_address(): 메일 주소 문법 검증

Design Decisions:
- 암호학적 난수 아님 (casual replay 방지용 nonce, 보안 경계 아님)
- 기본 길이 16자 (62^16 공간 → 충돌 처리 불필요)
- RNG 주입 가능 (테스트 determinism)
"""

import random
import re
import string
from email.utils import parseaddr
from typing import Optional

CODE_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
DEFAULT_CODE_LENGTH = 16

_ADDRESS_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def generate_code(length: int = DEFAULT_CODE_LENGTH, rng: Optional[random.Random] = None) -> str:
    """
    Verification code 생성

    Args:
        length: 코드 길이 (>= 1)
        rng: 난수 소스 (default: random 모듈 전역 RNG)

    Returns:
        code: length 자, CODE_ALPHABET 문자만 포함

    Raises:
        ValueError: length < 1

    Example:
        >>> len(generate_code(16))
        16
        >>> set(generate_code(64)) <= set(CODE_ALPHABET)
        True
    """
    if not isinstance(length, int) or length < 1:
        raise ValueError(f"Code length must be a positive integer, got {length!r}")

    source = rng if rng is not None else random
    return "".join(source.choices(CODE_ALPHABET, k=length))


def normalize_token(raw: Optional[str]) -> str:
    """
    요청 target에서 받은 token 정규화

    - query string 제거
    - leading '/' 1개만 제거 (그 외 문자는 그대로)

    Example:
        >>> normalize_token("/abc123")
        'abc123'
        >>> normalize_token("abc123?x=1")
        'abc123'
        >>> normalize_token("//abc123")
        '/abc123'
    """
    if not raw:
        return ""
    token = raw.split("?", 1)[0]
    if token.startswith("/"):
        token = token[1:]
    return token


def mask_code(code: Optional[str]) -> str:
    """
    로그용 코드 마스킹 (앞 2자만 노출)

    Example:
        >>> mask_code("abcdef")
        'ab****'
    """
    if not code:
        return ""
    return code[:2] + "*" * (len(code) - 2)


def is_valid_address(address: str) -> bool:
    """
    메일 주소 문법 검증 (RFC 5322 간이 검사)

    Returns:
        True: 유효한 주소 ("Name <a@b.c>" 형식 포함)
        False: 빈 문자열, '@' 없음, domain에 '.' 없음 등
    """
    if not isinstance(address, str) or not address.strip():
        return False

    _, parsed = parseaddr(address.strip())
    if not parsed:
        return False

    return bool(_ADDRESS_PATTERN.match(parsed))
