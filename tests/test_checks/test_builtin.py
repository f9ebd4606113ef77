"""
組み込みチェックのテスト

FakeDriver に画面要素を登録し、Orchestrator 経由で各チェックを実行して
結果分類を検証する。

テスト対象:
  - alchemy.hint-reward: Pass / DegradedPass / Fail
  - vkvideo.playback: Pass / EnvironmentSkip / Fail
  - vkvideo.search: Pass / DegradedPass / Fail
  - vkvideo.invalid-deep-link: Pass / EnvironmentSkip / Fail
"""

from __future__ import annotations

import pytest
from selenium.common.exceptions import WebDriverException

from mrt.checks import alchemy, create_default_registry, vkvideo
from mrt.config import Profile
from mrt.core.orchestrator import Classification, Orchestrator, ScenarioResult
from tests.fakes import FakeDriver, FakeElement, make_manager, make_profile


def _run(name: str, driver: FakeDriver, profile: Profile | None = None) -> ScenarioResult:
    check = create_default_registry().get(name)
    return Orchestrator(make_manager(driver)).run(check, profile or make_profile())


# ===========================================================================
# Alchemy
# ===========================================================================

@pytest.fixture
def alchemy_driver() -> FakeDriver:
    driver = FakeDriver()
    driver.put(alchemy.PLAY_BUTTON, FakeElement("Играть"))
    driver.put(alchemy.HINT_BUTTON, FakeElement("2"))
    driver.put(alchemy.HINTS_SECTION, FakeElement("Ваши подсказки"))
    driver.put(alchemy.WATCH_BUTTON, FakeElement("Смотреть"))
    driver.put(alchemy.REWARDED_HINTS, FakeElement("4"))
    return driver


class TestAlchemyHintReward:
    """alchemy.hint-reward のテスト。"""

    def test_pass(self, alchemy_driver: FakeDriver) -> None:
        result = _run("alchemy.hint-reward", alchemy_driver)
        assert result.classification is Classification.PASS
        assert [a.primitive for a in result.actions] == [
            "click", "click", "wait_visible", "click_soft", "read_text",
        ]

    def test_missing_section_degrades(self, alchemy_driver: FakeDriver) -> None:
        alchemy_driver.remove(alchemy.HINTS_SECTION)
        result = _run("alchemy.hint-reward", alchemy_driver)
        assert result.classification is Classification.DEGRADED_PASS
        assert "ヒントセクション" in result.reason

    def test_watch_unavailable_degrades(self, alchemy_driver: FakeDriver) -> None:
        alchemy_driver.put(alchemy.WATCH_BUTTON, FakeElement("Смотреть", enabled=False))
        result = _run("alchemy.hint-reward", alchemy_driver)
        assert result.classification is Classification.DEGRADED_PASS
        assert "Смотреть" in result.reason

    def test_missing_play_button_fails(self, alchemy_driver: FakeDriver) -> None:
        alchemy_driver.remove(alchemy.PLAY_BUTTON)
        result = _run("alchemy.hint-reward", alchemy_driver)
        assert result.classification is Classification.FAIL
        assert result.reason.startswith("ElementNotFound:")

    def test_hint_count_not_increased(self, alchemy_driver: FakeDriver) -> None:
        alchemy_driver.remove(alchemy.REWARDED_HINTS)
        result = _run("alchemy.hint-reward", alchemy_driver)
        assert result.classification is Classification.FAIL
        assert result.reason.startswith("ElementNotFound:")


# ===========================================================================
# VK Video: 再生
# ===========================================================================

@pytest.fixture
def feed_driver() -> FakeDriver:
    driver = FakeDriver()
    driver.put(vkvideo.FEED_ITEM, FakeElement(), FakeElement(), FakeElement())
    return driver


class TestVkVideoPlayback:
    """vkvideo.playback のテスト。"""

    def test_pass(self, feed_driver: FakeDriver) -> None:
        feed_driver.put(vkvideo.VIDEO_DISPLAY, FakeElement())
        feed_driver.put(vkvideo.PLAYER_CONTROL, FakeElement())
        feed_driver.put(vkvideo.LIKES, FakeElement("12"))
        feed_driver.put(vkvideo.TITLE, FakeElement("Новости дня"))

        result = _run("vkvideo.playback", feed_driver)
        assert result.classification is Classification.PASS

    def test_login_screen_is_skipped(self, feed_driver: FakeDriver) -> None:
        """ログイン画面が表示されていれば閉じてから再生すること。"""
        login = FakeElement("Не сейчас")
        feed_driver.put(vkvideo.FAST_LOGIN_BUTTON, login)
        feed_driver.put(vkvideo.VIDEO_DISPLAY, FakeElement())
        feed_driver.put(vkvideo.PLAYER_CONTROL, FakeElement())
        feed_driver.put(vkvideo.LIKES, FakeElement())
        feed_driver.put(vkvideo.TITLE, FakeElement("Новости дня"))

        result = _run("vkvideo.playback", feed_driver)
        assert result.classification is Classification.PASS
        assert login.clicks == 1

    def test_error_message_is_environment_skip(self, feed_driver: FakeDriver) -> None:
        feed_driver.put(vkvideo.ERROR_MESSAGE, FakeElement("Видео недоступно в вашей стране"))
        result = _run("vkvideo.playback", feed_driver)
        assert result.classification is Classification.ENVIRONMENT_SKIP
        assert "Видео недоступно" in result.reason

    def test_unavailable_text_is_environment_skip(self, feed_driver: FakeDriver) -> None:
        feed_driver.put(vkvideo.UNAVAILABLE_TEXT, FakeElement("Недоступно"))
        result = _run("vkvideo.playback", feed_driver)
        assert result.classification is Classification.ENVIRONMENT_SKIP

    def test_unexplained_missing_player_fails(self, feed_driver: FakeDriver) -> None:
        result = _run("vkvideo.playback", feed_driver)
        assert result.classification is Classification.FAIL
        assert result.reason.startswith("CheckFailed:")

    def test_empty_feed_fails(self) -> None:
        driver = FakeDriver()
        driver.put(vkvideo.FEED_ITEM, FakeElement())
        result = _run("vkvideo.playback", driver)
        assert result.classification is Classification.FAIL
        assert result.reason.startswith("CollectionTimeout:")

    def test_missing_controls_fails(self, feed_driver: FakeDriver) -> None:
        feed_driver.put(vkvideo.VIDEO_DISPLAY, FakeElement())
        result = _run("vkvideo.playback", feed_driver)
        assert result.classification is Classification.FAIL


# ===========================================================================
# VK Video: 検索
# ===========================================================================

class TestVkVideoSearch:
    """vkvideo.search のテスト。"""

    def test_pass(self, fake_driver: FakeDriver) -> None:
        fake_driver.put(vkvideo.SEARCH_BUTTON, FakeElement())
        fake_driver.put(vkvideo.SEARCH_FIELD, FakeElement())
        result = _run("vkvideo.search", fake_driver)
        assert result.classification is Classification.PASS
        assert result.tags == ["end-to-end", "known-issue"]

    def test_stays_on_main_screen(self, fake_driver: FakeDriver) -> None:
        """検索が開かずメイン画面に留まる既知の不具合は DegradedPass になること。"""
        fake_driver.put(vkvideo.SEARCH_BUTTON, FakeElement())
        fake_driver.put(vkvideo.TITLE, FakeElement(vkvideo.APP_TITLE))
        result = _run("vkvideo.search", fake_driver)
        assert result.classification is Classification.DEGRADED_PASS
        assert result.degraded_reasons == ["検索が開かず、メイン画面のままです"]

    def test_search_button_missing_degrades(self, fake_driver: FakeDriver) -> None:
        fake_driver.put(vkvideo.TITLE, FakeElement("Главная"))
        result = _run("vkvideo.search", fake_driver)
        assert result.classification is Classification.DEGRADED_PASS
        assert len(result.degraded_reasons) == 2

    def test_app_minimized_fails(self, fake_driver: FakeDriver) -> None:
        result = _run("vkvideo.search", fake_driver)
        assert result.classification is Classification.FAIL
        assert "最小化" in result.reason


# ===========================================================================
# VK Video: 不正ディープリンク
# ===========================================================================

class TestVkVideoInvalidDeepLink:
    """vkvideo.invalid-deep-link のテスト。"""

    def test_home_screen_is_pass(self, fake_driver: FakeDriver) -> None:
        fake_driver.put(vkvideo.MAIN_CONTENT, FakeElement())
        result = _run("vkvideo.invalid-deep-link", fake_driver)
        assert result.classification is Classification.PASS
        assert fake_driver.scripts == [
            (
                "mobile: deepLink",
                {"url": "vk://vk.com/video-999999999_999999999", "package": "com.vk.vkvideo"},
            ),
        ]

    def test_error_screen_is_pass(self, fake_driver: FakeDriver) -> None:
        fake_driver.put(vkvideo.ERROR_TEXT, FakeElement("Ошибка: видео не найдено"))
        result = _run("vkvideo.invalid-deep-link", fake_driver)
        assert result.classification is Classification.PASS

    def test_no_outcome_fails(self, fake_driver: FakeDriver) -> None:
        result = _run("vkvideo.invalid-deep-link", fake_driver)
        assert result.classification is Classification.FAIL
        assert result.reason.startswith("DeepLinkUnresolved:")

    def test_rejected_deep_link_is_environment_skip(self, fake_driver: FakeDriver) -> None:
        fake_driver.script_error = WebDriverException("No activity found to handle intent")
        result = _run("vkvideo.invalid-deep-link", fake_driver)
        assert result.classification is Classification.ENVIRONMENT_SKIP

    def test_profile_without_deep_link_fails(self, fake_driver: FakeDriver) -> None:
        profile = make_profile().model_copy(update={"deepLink": None})
        result = _run("vkvideo.invalid-deep-link", fake_driver, profile)
        assert result.classification is Classification.FAIL
        assert result.reason.startswith("CheckFailed:")
        assert fake_driver.scripts == []
