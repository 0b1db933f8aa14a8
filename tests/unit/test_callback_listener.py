"""
tests/unit/test_callback_listener.py
Unit tests for callback listener HTTP surface

Test Coverage:
1. GET /<pending_code> → check-in 수락
2. 잘못된 경로/코드 → 200 + 빈 body, 상태 불변
3. 성공/실패 응답 구분 없음
4. Query string 무시, POST/HEAD 허용
5. CallbackListener.on_request()
"""

import pytest
from fastapi.testclient import TestClient

from dms.domain.state import Phase
from dms.infrastructure.http.callback_listener import CallbackListener, create_app


@pytest.fixture
def armed_engine(engine, make_config):
    engine.arm(make_config(forgiveness=1))
    engine.run_tick()
    return engine


@pytest.fixture
def client(armed_engine):
    return TestClient(create_app(armed_engine))


def test_matching_path_accepts_check_in(client, armed_engine):
    response = client.get("/code0000")

    assert response.status_code == 200
    assert response.content == b""
    assert armed_engine.pending_code is None


@pytest.mark.parametrize("path", ["/", "/wrong", "/favicon.ico", "/code0000/extra", "/CODE0000"])
def test_other_paths_change_nothing(client, armed_engine, path):
    before = armed_engine.snapshot()

    response = client.get(path)

    assert response.status_code == 200
    assert response.content == b""
    assert armed_engine.snapshot() == before


def test_success_and_failure_responses_identical(client):
    failed = client.get("/nope")
    accepted = client.get("/code0000")

    assert failed.status_code == accepted.status_code == 200
    assert failed.content == accepted.content == b""


def test_query_string_ignored(client, armed_engine):
    assert client.get("/code0000?utm_source=mail").status_code == 200
    assert armed_engine.pending_code is None


@pytest.mark.parametrize("method", ["post", "head"])
def test_other_methods_accepted(client, armed_engine, method):
    response = getattr(client, method)("/code0000")

    assert response.status_code == 200
    assert armed_engine.pending_code is None


def test_docs_disabled(client):
    """/docs 등도 token 경로로 처리 (빈 200)"""
    response = client.get("/docs")

    assert response.status_code == 200
    assert response.content == b""


def test_request_after_trigger_is_ignored(engine, make_config):
    engine.arm(make_config(forgiveness=0))
    engine.run_tick()
    engine.run_tick()
    client = TestClient(create_app(engine))

    assert client.get("/code0000").status_code == 200
    assert engine.phase == Phase.TRIGGERED


def test_on_request_normalizes_token(armed_engine):
    listener = CallbackListener(armed_engine, host="127.0.0.1", port=0)

    assert listener.on_request("/code0000") is True
    assert listener.on_request("/code0000") is False
    assert listener.is_running() is False
    assert listener.started is False


@pytest.mark.parametrize("path", ["/%20code0000", "/code0000%20", "/code0000/"])
def test_path_must_match_code_exactly(client, armed_engine, path):
    """공백, 뒤쪽 '/' 등은 제거하지 않음"""
    assert client.get(path).status_code == 200
    assert armed_engine.pending_code == "code0000"


def test_on_request_strips_one_separator(armed_engine):
    listener = CallbackListener(armed_engine, host="127.0.0.1", port=0)

    assert listener.on_request("//code0000") is False
    assert listener.on_request("/code0000?from=mail") is True
