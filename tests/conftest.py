"""
tests/conftest.py
공용 fixtures (FakeNotifier, SwitchConfig factory, deterministic engine)
"""

import itertools

import pytest

from dms.application.switch_engine import SwitchEngine
from dms.domain.state import SwitchConfig
from dms.infrastructure.notification.fake_notifier import FakeNotifier

OPERATOR = "operator@example.com"
RECIPIENTS = ("alice@example.com", "bob@example.org")
SECRET = b"the vault combination is 12-34-56"


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_config():
    """SwitchConfig factory (기본값 override 가능)"""

    def _make(**overrides):
        values = {
            "operator_address": OPERATOR,
            "recipients": RECIPIENTS,
            "interval_seconds": 60.0,
            "forgiveness": 1,
            "secret": SECRET,
        }
        values.update(overrides)
        return SwitchConfig(**values)

    return _make


@pytest.fixture
def sequential_codes():
    """code0000, code0001, ... 순서대로 생성"""
    counter = itertools.count()
    return lambda length: f"code{next(counter):04d}"


@pytest.fixture
def engine(notifier, sequential_codes):
    """Ticker 없이 run_tick()을 직접 호출하는 엔진"""
    return SwitchEngine(
        notifier=notifier,
        public_url="http://switch.test:9999",
        code_generator=sequential_codes,
    )
