"""
tests/unit/test_ids.py
Unit tests for verification code / token helpers

Test Coverage:
1. generate_code(): 길이 N, 62자 알파벳만 사용 (N >= 1)
2. generate_code(): N < 1 → ValueError
3. generate_code(): RNG 주입 → 재현 가능
4. normalize_token(): query 제거, leading '/' 1개만 제거
5. mask_code(): 앞 2자만 노출
6. is_valid_address(): 주소 문법
"""

import random

import pytest

from dms.domain.ids import (
    CODE_ALPHABET,
    DEFAULT_CODE_LENGTH,
    generate_code,
    is_valid_address,
    mask_code,
    normalize_token,
)


def test_alphabet_is_62_alphanumeric_chars():
    assert len(CODE_ALPHABET) == 62
    assert len(set(CODE_ALPHABET)) == 62
    assert CODE_ALPHABET.isalnum()


@pytest.mark.parametrize("length", [1, 2, 16, 64, 500])
def test_generate_code_length_and_alphabet(length):
    code = generate_code(length)

    assert len(code) == length
    assert set(code) <= set(CODE_ALPHABET)


def test_generate_code_default_length():
    assert len(generate_code()) == DEFAULT_CODE_LENGTH == 16


@pytest.mark.parametrize("length", [0, -1])
def test_generate_code_rejects_non_positive_length(length):
    with pytest.raises(ValueError):
        generate_code(length)


def test_generate_code_with_seeded_rng_is_reproducible():
    a = generate_code(32, rng=random.Random(42))
    b = generate_code(32, rng=random.Random(42))

    assert a == b


def test_generate_code_covers_alphabet():
    """충분히 긴 코드 → 대/소문자/숫자 모두 등장"""
    code = generate_code(5000, rng=random.Random(7))

    assert any(c.islower() for c in code)
    assert any(c.isupper() for c in code)
    assert any(c.isdigit() for c in code)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("/abc123", "abc123"),
        ("abc123", "abc123"),
        ("//abc123", "/abc123"),
        ("/abc123?utm=mail", "abc123"),
        (" /abc123", " /abc123"),
        ("///abc123?x=1", "//abc123"),
        ("/", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_token(raw, expected):
    assert normalize_token(raw) == expected


def test_mask_code_hides_all_but_prefix():
    assert mask_code("abcdef") == "ab****"
    assert mask_code("ab") == "ab"
    assert mask_code("") == ""
    assert mask_code(None) == ""


@pytest.mark.parametrize(
    "address",
    ["me@example.com", "first.last+tag@sub.example.org", "Me <me@example.com>"],
)
def test_valid_addresses(address):
    assert is_valid_address(address) is True


@pytest.mark.parametrize(
    "address",
    ["", "   ", "me", "me@", "@example.com", "me@localhost", None, 42],
)
def test_invalid_addresses(address):
    assert is_valid_address(address) is False
