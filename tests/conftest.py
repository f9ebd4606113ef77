"""
テスト共通フィクスチャ

フェイクドライバ・セッション・Interactor・短い待機ポリシーを提供する。
フェイク本体は tests/fakes.py に定義している。
"""

from __future__ import annotations

import pytest

from mrt.config import Profile
from mrt.core.interaction import Interactor
from mrt.core.session import DeviceSession, SessionConfig, SessionManager
from mrt.core.waits import WaitPolicy
from tests.fakes import (
    FakeDriver,
    make_active_session,
    make_manager,
    make_profile,
    make_session_config,
)


@pytest.fixture(autouse=True)
def _clear_mrt_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """MRT_* 環境変数の影響を受けないようにする。"""
    for name in (
        "MRT_SERVER_URL",
        "MRT_DEVICE_UDID",
        "MRT_DEVICE_NAME",
        "MRT_PLATFORM_VERSION",
        "MRT_ARTIFACTS_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def session_config() -> SessionConfig:
    return make_session_config()


@pytest.fixture
def manager(fake_driver: FakeDriver) -> SessionManager:
    return make_manager(fake_driver)


@pytest.fixture
def active_session(fake_driver: FakeDriver) -> DeviceSession:
    return make_active_session(fake_driver)


@pytest.fixture
def ui(active_session: DeviceSession) -> Interactor:
    return Interactor(active_session)


@pytest.fixture
def fast_policy() -> WaitPolicy:
    """テスト用の短い待機ポリシー（60ms / 5ms 間隔）。"""
    return WaitPolicy(name="fast", timeout_ms=60, poll_ms=5)


@pytest.fixture
def profile() -> Profile:
    return make_profile()
