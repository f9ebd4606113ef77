"""
待機ポリシーのユニットテスト

テスト対象:
  - WaitPolicy: 値の検証
  - DEFAULT_POLICY / EXTENDED_POLICY / PURPOSE_TABLE / WaitPolicySet
  - wait_until: 成立・タイムアウト・無視対象例外・通信エラーの送出
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from selenium.common.exceptions import (
    NoSuchElementException,
    StaleElementReferenceException,
    WebDriverException,
)

from mrt.core.waits import (
    DEFAULT_POLICY,
    EXTENDED_POLICY,
    PURPOSE_TABLE,
    WaitPolicy,
    WaitPolicySet,
    WaitPurpose,
    wait_until,
)


# ===========================================================================
# WaitPolicy / プリセット
# ===========================================================================

class TestWaitPolicy:
    """WaitPolicy とプリセットのテスト。"""

    def test_presets(self) -> None:
        assert DEFAULT_POLICY.timeout_ms == 10_000
        assert EXTENDED_POLICY.timeout_ms == 60_000
        assert DEFAULT_POLICY.poll_ms == 200

    def test_negative_timeout_rejected(self) -> None:
        with pytest.raises(ValueError):
            WaitPolicy(name="x", timeout_ms=-1)

    def test_zero_poll_rejected(self) -> None:
        with pytest.raises(ValueError):
            WaitPolicy(name="x", timeout_ms=100, poll_ms=0)

    def test_policy_is_immutable(self) -> None:
        with pytest.raises(AttributeError):
            DEFAULT_POLICY.timeout_ms = 1  # type: ignore[misc]


class TestPurposeTable:
    """用途 → プリセットの対応表のテスト。"""

    def test_every_purpose_is_mapped(self) -> None:
        assert set(PURPOSE_TABLE) == set(WaitPurpose)

    def test_network_content_uses_extended(self) -> None:
        policies = WaitPolicySet()
        assert policies.for_purpose(WaitPurpose.NETWORK_CONTENT) is EXTENDED_POLICY

    @pytest.mark.parametrize(
        "purpose", [WaitPurpose.UI_FEEDBACK, WaitPurpose.DEEP_LINK, WaitPurpose.APP_LAUNCH],
    )
    def test_other_purposes_use_default(self, purpose: WaitPurpose) -> None:
        assert WaitPolicySet().for_purpose(purpose) is DEFAULT_POLICY

    def test_custom_set(self) -> None:
        short = WaitPolicy(name="default", timeout_ms=5)
        policies = WaitPolicySet(default=short)
        assert policies.for_purpose(WaitPurpose.UI_FEEDBACK) is short


# ===========================================================================
# wait_until
# ===========================================================================

class TestWaitUntil:
    """wait_until() のテスト。"""

    def test_success_carries_value(self, fast_policy: WaitPolicy) -> None:
        result = wait_until(MagicMock(), lambda d: "found", fast_policy)
        assert result.ok
        assert result.value == "found"
        assert not result.timed_out

    def test_becomes_true_after_polls(self, fast_policy: WaitPolicy) -> None:
        calls = {"n": 0}

        def predicate(driver: object) -> bool:
            calls["n"] += 1
            return calls["n"] >= 3

        result = wait_until(MagicMock(), predicate, fast_policy)
        assert result.ok
        assert calls["n"] == 3

    def test_timeout(self, fast_policy: WaitPolicy) -> None:
        result = wait_until(MagicMock(), lambda d: False, fast_policy)
        assert result.timed_out
        assert result.value is None

    def test_predicate_evaluated_at_least_once(self) -> None:
        """タイムアウト 0 でも述語は1回評価されること。"""
        predicate = MagicMock(return_value=True)
        result = wait_until(MagicMock(), predicate, WaitPolicy(name="zero", timeout_ms=0, poll_ms=1))
        assert result.ok
        predicate.assert_called()

    @pytest.mark.parametrize(
        "exc", [NoSuchElementException("gone"), StaleElementReferenceException("stale")],
    )
    def test_element_disappearance_is_not_yet(self, exc: Exception, fast_policy: WaitPolicy) -> None:
        """要素の消失は「まだ成立していない」として扱われること。"""
        def predicate(driver: object) -> bool:
            raise exc

        result = wait_until(MagicMock(), predicate, fast_policy)
        assert result.timed_out

    def test_transport_error_propagates(self, fast_policy: WaitPolicy) -> None:
        def predicate(driver: object) -> bool:
            raise WebDriverException("socket hang up")

        with pytest.raises(WebDriverException):
            wait_until(MagicMock(), predicate, fast_policy)
