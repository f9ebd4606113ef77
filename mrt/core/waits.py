"""
待機ポリシー — タイムアウト・ポーリングの一元管理

「要素が可視になる / 操作可能になる / 件数が増える」までの待機を
WaitPolicy に従って実行する。タイムアウト値を決めるのはこのモジュールと
プロファイル設定のみで、呼び出し側は値をハードコードしない。

主な機能:
  - WaitPolicy: タイムアウト・ポーリング間隔の不変設定
  - DEFAULT_POLICY / EXTENDED_POLICY: 2つの標準プリセット
  - WaitPolicySet / PURPOSE_TABLE: 用途 → プリセットの明示的な対応表
  - wait_until: 条件が成立するかタイムアウトするまでポーリングする
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from selenium.common.exceptions import (
    NoSuchElementException,
    StaleElementReferenceException,
    TimeoutException,
)
from selenium.webdriver.support.ui import WebDriverWait

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# WaitPolicy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WaitPolicy:
    """待機ポリシー。

    Attributes:
        name: プリセット名（default / extended 等）
        timeout_ms: タイムアウト（ミリ秒）
        poll_ms: ポーリング間隔（ミリ秒）
    """

    name: str
    timeout_ms: int
    poll_ms: int = 200

    def __post_init__(self) -> None:
        if self.timeout_ms < 0:
            raise ValueError(f"timeout_ms は 0 以上を指定してください: {self.timeout_ms}")
        if self.poll_ms <= 0:
            raise ValueError(f"poll_ms は正の値を指定してください: {self.poll_ms}")


# 一般的な UI フィードバック向け（短い）
DEFAULT_POLICY = WaitPolicy(name="default", timeout_ms=10_000)

# 広告視聴後の報酬付与など、外部・ネットワーク依存のコンテンツ向け（長い）
EXTENDED_POLICY = WaitPolicy(name="extended", timeout_ms=60_000)


class WaitPurpose(str, enum.Enum):
    """待機の用途。プリセットの選択は PURPOSE_TABLE で行う。"""

    UI_FEEDBACK = "ui_feedback"
    NETWORK_CONTENT = "network_content"
    DEEP_LINK = "deep_link"
    APP_LAUNCH = "app_launch"


PURPOSE_TABLE: dict[WaitPurpose, str] = {
    WaitPurpose.UI_FEEDBACK: "default",
    WaitPurpose.NETWORK_CONTENT: "extended",
    WaitPurpose.DEEP_LINK: "default",
    WaitPurpose.APP_LAUNCH: "default",
}
"""用途 → プリセット名の対応表。"""


@dataclass(frozen=True)
class WaitPolicySet:
    """プロファイルごとのプリセット集合。

    Attributes:
        default: 短いプリセット
        extended: 長いプリセット
    """

    default: WaitPolicy = DEFAULT_POLICY
    extended: WaitPolicy = EXTENDED_POLICY

    def for_purpose(self, purpose: WaitPurpose) -> WaitPolicy:
        """用途に対応するプリセットを返す。

        Args:
            purpose: 待機の用途

        Returns:
            PURPOSE_TABLE で選択された WaitPolicy
        """
        return getattr(self, PURPOSE_TABLE[purpose])


# ---------------------------------------------------------------------------
# 待機結果
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WaitResult:
    """wait_until の結果（Success または Timeout）。

    Attributes:
        ok: 条件が成立した場合は True（Success）、タイムアウト時は False
        value: 成立時に述語が返した値
        elapsed_ms: 経過時間（ミリ秒）
    """

    ok: bool
    value: Any = None
    elapsed_ms: float = 0.0

    @property
    def timed_out(self) -> bool:
        return not self.ok


# ---------------------------------------------------------------------------
# wait_until
# ---------------------------------------------------------------------------

_IGNORED_EXCEPTIONS = (NoSuchElementException, StaleElementReferenceException)


def wait_until(
    driver: Any,
    predicate: Callable[[Any], Any],
    policy: WaitPolicy,
    *,
    description: str = "",
) -> WaitResult:
    """述語が真値を返すか、ポリシーのタイムアウトまでポーリングする。

    述語は最低1回評価される。要素の消失（NoSuchElement / StaleElement）は
    「まだ成立していない」として扱い、それ以外の WebDriverException は
    呼び出し側へそのまま送出する。

    Args:
        driver: 述語に渡す WebDriver
        predicate: driver を受け取り、成立時に真値を返す関数
        policy: 適用する待機ポリシー
        description: ログ用の待機対象の説明

    Returns:
        成立時は ok=True と述語の戻り値、タイムアウト時は ok=False の WaitResult

    Raises:
        WebDriverException: 無視対象以外の通信エラーが発生した場合
    """
    start = time.perf_counter()
    waiter = WebDriverWait(
        driver,
        timeout=policy.timeout_ms / 1000.0,
        poll_frequency=policy.poll_ms / 1000.0,
        ignored_exceptions=_IGNORED_EXCEPTIONS,
    )

    try:
        value = waiter.until(predicate)
    except TimeoutException:
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug(
            "待機がタイムアウトしました: %s（policy=%s, %.0fms 経過）",
            description, policy.name, elapsed,
        )
        return WaitResult(ok=False, elapsed_ms=elapsed)

    elapsed = (time.perf_counter() - start) * 1000
    logger.debug("待機条件が成立しました: %s（%.0fms 経過）", description, elapsed)
    return WaitResult(ok=True, value=value, elapsed_ms=elapsed)
