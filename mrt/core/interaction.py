"""
Interactor — 待機付き UI 操作プリミティブ

アクティブな DeviceSession に対して、クリック・テキスト取得・存在確認などの
操作を WaitPolicy に従って実行する。要素の不在が「欠陥」か「想定される揺らぎ」かは
プリミティブごとに型で決まる。

ハードプリミティブ（失敗は例外）:
  - click: 操作可能になるまで待機してクリック
  - read_text: 可視になるまで待機してテキストを取得
  - wait_count_above: 要素コレクションの件数が閾値を超えるまで待機

ソフトプリミティブ（失敗は bool / None）:
  - click_soft: click と同じ待機を行い、結果を bool で返す
  - is_visible: 待機なしの即時プローブ
  - wait_visible: 可視になるまで待機し、結果を bool で返す
  - wait_any_visible: 複数候補のうち最初に可視になったものの名前を返す
  - open_deep_link: ディープリンクを1回のコマンドで送信し、受理されたかを返す

例外を bool に変換するのは _as_flag() の1箇所のみ。
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from selenium.common.exceptions import (
    ElementNotInteractableException,
    StaleElementReferenceException,
    WebDriverException,
)
from urllib3.exceptions import HTTPError

from ..errors import (
    CollectionTimeout,
    ElementNotFound,
    ElementNotInteractable,
    TransportError,
)
from .locator import Locator, describe, to_query
from .session import DeviceSession
from .waits import WaitPolicy, wait_until

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 操作結果
# ---------------------------------------------------------------------------

class OutcomeKind(str, enum.Enum):
    """操作結果の種別。"""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    NOT_INTERACTABLE = "not_interactable"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class InteractionOutcome:
    """プリミティブ内部で扱う操作結果。

    Attributes:
        kind: 結果種別
        value: 成功時の値（テキスト・件数等）
        error: 通信エラー時の元例外
    """

    kind: OutcomeKind
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


@dataclass
class ActionRecord:
    """1回のプリミティブ呼び出しの記録。

    Attributes:
        primitive: プリミティブ名（click, read_text 等）
        target: 対象の説明
        outcome: 結果種別
        duration_ms: 実行時間（ミリ秒）
        policy: 適用した待機ポリシー名（即時プローブは None）
        error: 失敗時の詳細
    """

    primitive: str
    target: str
    outcome: OutcomeKind
    duration_ms: float = 0.0
    policy: Optional[str] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Interactor 本体
# ---------------------------------------------------------------------------

class Interactor:
    """アクティブなセッションに束縛された UI 操作レイヤー。

    全プリミティブは呼び出し時にセッションが ACTIVE であることを確認し、
    呼び出しごとに ActionRecord を history に追加する。
    """

    def __init__(self, session: DeviceSession) -> None:
        self._session = session
        self.history: list[ActionRecord] = []

    @property
    def log(self) -> logging.LoggerAdapter:
        return self._session.log

    # -------------------------------------------------------------------
    # ハードプリミティブ
    # -------------------------------------------------------------------

    def click(self, locator: Locator, policy: WaitPolicy) -> None:
        """要素が操作可能になるまで待機してクリックする。

        Raises:
            ElementNotFound: 待機時間内に要素が見つからない場合
            ElementNotInteractable: 要素が操作可能にならない場合
            TransportError: サーバーとの通信に失敗した場合
        """
        outcome = self._run("click", describe(locator), policy, lambda: self._click(locator, policy))
        self._require(outcome, locator, policy)

    def read_text(self, locator: Locator, policy: WaitPolicy) -> str:
        """要素が可視になるまで待機し、テキストを返す。

        Raises:
            ElementNotFound: 待機時間内に要素が可視にならない場合
            TransportError: サーバーとの通信に失敗した場合
        """
        outcome = self._run(
            "read_text", describe(locator), policy,
            lambda: self._await_element(locator, policy, _displayed, read=lambda el: (el.text or "",)),
        )
        self._require(outcome, locator, policy)
        return outcome.value[0]

    def wait_count_above(self, locator: Locator, n: int, policy: WaitPolicy) -> int:
        """要素コレクションの件数が n を超えるまで待機し、件数を返す。

        Raises:
            CollectionTimeout: 待機時間内に件数が n を超えなかった場合
            TransportError: サーバーとの通信に失敗した場合
        """
        self._session.require_active()
        target = f"{describe(locator)} (count > {n})"
        last_count = 0

        def probe(driver: Any) -> Any:
            nonlocal last_count
            last_count = len(driver.find_elements(*to_query(locator)))
            return last_count if last_count > n else False

        def attempt() -> InteractionOutcome:
            result = wait_until(self._session.driver, probe, policy, description=target)
            if result.ok:
                return InteractionOutcome(OutcomeKind.SUCCESS, value=result.value)
            return InteractionOutcome(OutcomeKind.NOT_FOUND)

        outcome = self._run("wait_count_above", target, policy, attempt)
        if outcome.kind is OutcomeKind.NOT_FOUND:
            raise CollectionTimeout(
                f"要素数が {policy.timeout_ms}ms 以内に {n} を超えませんでした: "
                f"{describe(locator)}（最終件数: {last_count}）",
                target=describe(locator),
                timeout_ms=policy.timeout_ms,
            )
        self._require(outcome, locator, policy)
        return outcome.value

    # -------------------------------------------------------------------
    # ソフトプリミティブ
    # -------------------------------------------------------------------

    def click_soft(self, locator: Locator, policy: WaitPolicy) -> bool:
        """click と同じ待機・クリックを行い、成否を bool で返す。例外は送出しない。"""
        outcome = self._run(
            "click_soft", describe(locator), policy, lambda: self._click(locator, policy),
        )
        return self._as_flag(outcome, "click_soft", describe(locator))

    def is_visible(self, locator: Locator) -> bool:
        """要素が現在表示されているかを待機なしで確認する。例外は送出しない。"""
        outcome = self._run("is_visible", describe(locator), None, lambda: self._probe(locator))
        return self._as_flag(outcome, "is_visible", describe(locator))

    def wait_visible(self, locator: Locator, policy: WaitPolicy) -> bool:
        """要素が可視になるまで待機し、結果を bool で返す。例外は送出しない。"""
        outcome = self._run(
            "wait_visible", describe(locator), policy,
            lambda: self._await_element(locator, policy, _displayed),
        )
        return self._as_flag(outcome, "wait_visible", describe(locator))

    def wait_any_visible(
        self, candidates: Mapping[str, Locator], policy: WaitPolicy,
    ) -> Optional[str]:
        """候補のいずれかが可視になるまで待機し、最初に見つかった候補名を返す。

        候補は辞書の順に確認する。どれも可視にならなければ None を返す。
        例外は送出しない。
        """
        target = ", ".join(f"{name}({describe(loc)})" for name, loc in candidates.items())

        def probe(driver: Any) -> Any:
            for name, loc in candidates.items():
                elements = driver.find_elements(*to_query(loc))
                if elements and elements[0].is_displayed():
                    return name
            return False

        def attempt() -> InteractionOutcome:
            result = wait_until(self._session.driver, probe, policy, description=target)
            if result.ok:
                return InteractionOutcome(OutcomeKind.SUCCESS, value=result.value)
            return InteractionOutcome(OutcomeKind.NOT_FOUND)

        outcome = self._run("wait_any_visible", target, policy, attempt)
        if not self._as_flag(outcome, "wait_any_visible", target):
            return None
        return outcome.value

    def open_deep_link(self, uri: str, package: str) -> bool:
        """ディープリンクを1回のコマンドで送信する。

        待機は行わない。プラットフォームが受理した場合は True、
        通信レベルで拒否された場合は False を返す。例外は送出しない。
        """
        target = f"{uri} ({package})"

        def attempt() -> InteractionOutcome:
            self._session.driver.execute_script(
                "mobile: deepLink", {"url": uri, "package": package},
            )
            return InteractionOutcome(OutcomeKind.SUCCESS)

        self.log.info("ディープリンクを開きます: %s", uri)
        outcome = self._run("open_deep_link", target, None, attempt)
        return self._as_flag(outcome, "open_deep_link", target)

    # -------------------------------------------------------------------
    # 結果の変換
    # -------------------------------------------------------------------

    def _as_flag(self, outcome: InteractionOutcome, primitive: str, target: str) -> bool:
        """ソフトプリミティブの結果を bool に変換する。

        不在・操作不能・通信エラーを False として吸収する唯一の箇所。
        """
        if outcome.ok:
            return True
        if outcome.kind is OutcomeKind.TRANSPORT_ERROR:
            self.log.warning(
                "%s: 通信エラーのため False として扱います: %s — %s",
                primitive, target, outcome.error,
            )
        else:
            self.log.info("%s: %s のため False を返します: %s", primitive, outcome.kind.value, target)
        return False

    def _require(self, outcome: InteractionOutcome, locator: Locator, policy: WaitPolicy) -> None:
        """ハードプリミティブの結果を検証し、失敗時は型付きの例外を送出する。"""
        if outcome.ok:
            return
        target = describe(locator)
        if outcome.kind is OutcomeKind.NOT_FOUND:
            raise ElementNotFound(
                f"要素が {policy.timeout_ms}ms 以内に見つかりませんでした: {target}",
                target=target,
                timeout_ms=policy.timeout_ms,
            )
        if outcome.kind is OutcomeKind.NOT_INTERACTABLE:
            raise ElementNotInteractable(
                f"要素が {policy.timeout_ms}ms 以内に操作可能になりませんでした: {target}",
                target=target,
                timeout_ms=policy.timeout_ms,
            )
        raise TransportError(
            f"サーバーとの通信に失敗しました: {target} — {outcome.error}"
        ) from outcome.error

    # -------------------------------------------------------------------
    # 内部処理
    # -------------------------------------------------------------------

    def _run(
        self,
        primitive: str,
        target: str,
        policy: Optional[WaitPolicy],
        attempt: Callable[[], InteractionOutcome],
    ) -> InteractionOutcome:
        """セッション状態を確認して attempt を実行し、ActionRecord を記録する。

        WebDriverException と urllib3 の HTTPError は TRANSPORT_ERROR の結果に変換する。
        """
        self._session.require_active()
        start = time.perf_counter()
        try:
            outcome = attempt()
        except (WebDriverException, HTTPError) as exc:
            logger.debug("%s %s: 通信エラー", primitive, target, exc_info=True)
            outcome = InteractionOutcome(OutcomeKind.TRANSPORT_ERROR, error=exc)

        duration = (time.perf_counter() - start) * 1000
        self.history.append(ActionRecord(
            primitive=primitive,
            target=target,
            outcome=outcome.kind,
            duration_ms=duration,
            policy=policy.name if policy is not None else None,
            error=str(outcome.error) if outcome.error is not None else None,
        ))
        self.log.debug("%s %s → %s（%.0fms）", primitive, target, outcome.kind.value, duration)
        return outcome

    def _await_element(
        self,
        locator: Locator,
        policy: WaitPolicy,
        condition: Callable[[Any], bool],
        *,
        read: Optional[Callable[[Any], Any]] = None,
        unmet: OutcomeKind = OutcomeKind.NOT_FOUND,
    ) -> InteractionOutcome:
        """最初の一致要素が condition を満たすまで待機する。

        要素が見つからない場合は NOT_FOUND、見つかったが条件を満たさない場合は
        unmet を結果とする。read を指定した場合はポーリング内で値を読み取る。
        """
        by, value = to_query(locator)
        last = OutcomeKind.NOT_FOUND

        def probe(driver: Any) -> Any:
            nonlocal last
            elements = driver.find_elements(by, value)
            if not elements:
                last = OutcomeKind.NOT_FOUND
                return False
            element = elements[0]
            if not condition(element):
                last = unmet
                return False
            return read(element) if read is not None else element

        result = wait_until(self._session.driver, probe, policy, description=describe(locator))
        if result.ok:
            return InteractionOutcome(OutcomeKind.SUCCESS, value=result.value)
        return InteractionOutcome(last)

    def _click(self, locator: Locator, policy: WaitPolicy) -> InteractionOutcome:
        outcome = self._await_element(
            locator, policy, _interactable, unmet=OutcomeKind.NOT_INTERACTABLE,
        )
        if not outcome.ok:
            return outcome
        try:
            outcome.value.click()
        except ElementNotInteractableException:
            return InteractionOutcome(OutcomeKind.NOT_INTERACTABLE)
        except StaleElementReferenceException:
            return InteractionOutcome(OutcomeKind.NOT_FOUND)
        self.log.info("クリックしました: %s", describe(locator))
        return InteractionOutcome(OutcomeKind.SUCCESS)

    def _probe(self, locator: Locator) -> InteractionOutcome:
        try:
            elements = self._session.driver.find_elements(*to_query(locator))
            if elements and elements[0].is_displayed():
                return InteractionOutcome(OutcomeKind.SUCCESS)
        except StaleElementReferenceException:
            pass
        return InteractionOutcome(OutcomeKind.NOT_FOUND)


def _displayed(element: Any) -> bool:
    return bool(element.is_displayed())


def _interactable(element: Any) -> bool:
    return bool(element.is_displayed() and element.is_enabled())
