"""
ロケータリゾルバのユニットテスト

テスト対象:
  - resolve: 記述辞書 → Locator（正常系・不正な記述）
  - by_text / by_id / by_xpath / containing / by_accessibility_id
  - to_query: Locator → (AppiumBy, value)
  - describe: 説明文字列
"""

from __future__ import annotations

import pytest
from appium.webdriver.common.appiumby import AppiumBy
from hypothesis import given
from hypothesis import strategies as st

from mrt.core.locator import (
    ANY_ELEMENT,
    Locator,
    LocatorStrategy,
    by_accessibility_id,
    by_id,
    by_text,
    by_xpath,
    containing,
    describe,
    resolve,
    to_query,
)
from mrt.errors import InvalidLocatorError


# ===========================================================================
# resolve
# ===========================================================================

class TestResolve:
    """resolve() のテスト。"""

    def test_text(self) -> None:
        loc = resolve({"text": "Играть"})
        assert loc == Locator(LocatorStrategy.TEXT, "Играть")

    def test_text_with_role(self) -> None:
        loc = resolve({"text": "OK", "role": "button"})
        assert loc.role == "button"

    def test_id(self) -> None:
        loc = resolve({"id": "com.vk.vkvideo:id/title"})
        assert loc.strategy is LocatorStrategy.ID
        assert loc.value == "com.vk.vkvideo:id/title"

    def test_xpath_is_stripped(self) -> None:
        loc = resolve({"xpath": "  //*[@text='x'] "})
        assert loc.value == "//*[@text='x']"

    def test_contains(self) -> None:
        assert resolve({"contains": "Ошибка"}).strategy is LocatorStrategy.CONTAINS

    def test_accessibility_id(self) -> None:
        assert resolve({"accessibilityId": "Search"}).strategy is LocatorStrategy.ACCESSIBILITY_ID

    def test_locator_passes_through(self) -> None:
        loc = by_id("a:id/b")
        assert resolve(loc) is loc

    @pytest.mark.parametrize(
        "description",
        [
            {},
            {"text": ""},
            {"text": "a", "id": "b"},
            {"name": "x"},
            {"text": "OK", "role": "slider"},
            {"id": "com.app:id/has space"},
            {"xpath": "button[1]"},
            {"text": "OK", "extra": 1},
            {"contains": ""},
        ],
    )
    def test_invalid_descriptions(self, description: dict) -> None:
        """不正な記述は InvalidLocatorError になること。"""
        with pytest.raises(InvalidLocatorError):
            resolve(description)

    def test_non_mapping(self) -> None:
        with pytest.raises(InvalidLocatorError):
            resolve("//*")  # type: ignore[arg-type]

    def test_invalid_locator_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            resolve({"id": ""})

    @given(text=st.text(min_size=1, max_size=30))
    def test_any_non_empty_text_resolves(self, text: str) -> None:
        """空でない任意のテキストが解決でき、値が保持されること。"""
        assert by_text(text).value == text


# ===========================================================================
# to_query
# ===========================================================================

class TestToQuery:
    """to_query() のテスト。"""

    def test_text_uses_uiselector(self) -> None:
        assert to_query(by_text("Играть")) == (
            AppiumBy.ANDROID_UIAUTOMATOR, 'new UiSelector().text("Играть")',
        )

    def test_text_with_role_adds_class_name(self) -> None:
        by, value = to_query(by_text("OK", role="button"))
        assert by == AppiumBy.ANDROID_UIAUTOMATOR
        assert value == 'new UiSelector().className("android.widget.Button").text("OK")'

    def test_text_escapes_quotes(self) -> None:
        _, value = to_query(by_text('say "hi" \\'))
        assert value == 'new UiSelector().text("say \\"hi\\" \\\\")'

    def test_id(self) -> None:
        assert to_query(by_id("com.vk.vkvideo:id/likes")) == (AppiumBy.ID, "com.vk.vkvideo:id/likes")

    def test_xpath(self) -> None:
        assert to_query(by_xpath("//*")) == (AppiumBy.XPATH, "//*")

    def test_contains_single_quote_literal(self) -> None:
        assert to_query(containing("Недоступно")) == (
            AppiumBy.XPATH, "//*[contains(@text, 'Недоступно')]",
        )

    def test_contains_with_apostrophe(self) -> None:
        _, value = to_query(containing("it's"))
        assert value == "//*[contains(@text, \"it's\")]"

    def test_contains_with_both_quotes_uses_concat(self) -> None:
        _, value = to_query(containing("a'b\"c"))
        assert value == "//*[contains(@text, concat('a', \"'\", 'b\"c'))]"

    def test_accessibility_id(self) -> None:
        assert to_query(by_accessibility_id("Search")) == (AppiumBy.ACCESSIBILITY_ID, "Search")

    def test_any_element(self) -> None:
        assert to_query(ANY_ELEMENT) == (AppiumBy.XPATH, "//*")


# ===========================================================================
# describe
# ===========================================================================

class TestDescribe:
    """describe() のテスト。"""

    def test_plain(self) -> None:
        assert describe(by_id("a:id/b")) == "id='a:id/b'"

    def test_with_role(self) -> None:
        assert describe(by_text("OK", role="button")) == "text='OK', role='button'"

    def test_str_uses_describe(self) -> None:
        loc = containing("Ошибка")
        assert str(loc) == describe(loc)
