"""
Orchestrator — チェックの実行と結果分類

登録済みチェックをセッションスコープ内で実行し、結果を
Pass / DegradedPass / EnvironmentSkip / Fail の4種に分類する。

主な機能:
  - Classification: 結果分類
  - CheckContext: チェック関数に渡す実行コンテキスト（degrade / skip / expect）
  - ScenarioResult: 1チェックの実行結果
  - classify(): 例外と縮退理由から分類を決定する純粋関数
  - Orchestrator: run() / run_all() によるチェック実行

分類規則:
  - 例外なし・縮退なし → PASS
  - 例外なし・縮退あり → DEGRADED_PASS（理由は "; " 区切り）
  - EnvironmentSkipped → ENVIRONMENT_SKIP
  - その他の例外 → FAIL（理由は "<例外型>: <メッセージ>"）

InvalidLocatorError / SessionStateError はプログラミングエラーとして
分類せず、セッション終了後にそのまま送出する。
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from selenium.common.exceptions import WebDriverException
from urllib3.exceptions import HTTPError

from ..errors import (
    CheckFailed,
    EnvironmentSkipped,
    InvalidLocatorError,
    LaunchError,
    ServerConnectionError,
    SessionStateError,
)
from .interaction import ActionRecord, Interactor
from .session import DeviceSession, SessionManager
from .waits import WaitPolicySet

if TYPE_CHECKING:
    from ..checks.registry import RegisteredCheck
    from ..config import Profile
    from .artifacts import ArtifactsManager

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 分類
# ---------------------------------------------------------------------------

class Classification(str, enum.Enum):
    """チェック結果の分類。"""

    PASS = "pass"
    DEGRADED_PASS = "degraded_pass"
    ENVIRONMENT_SKIP = "environment_skip"
    FAIL = "fail"


def classify(
    error: Optional[BaseException], degraded: Iterable[str],
) -> tuple[Classification, Optional[str]]:
    """例外と縮退理由からチェック結果を分類する。

    同じ入力に対して常に同じ結果を返す。

    Args:
        error: チェック実行中に発生した例外（なければ None）
        degraded: 記録された縮退理由

    Returns:
        (分類, 理由) のタプル。PASS の場合の理由は None
    """
    if error is None:
        reasons = list(degraded)
        if not reasons:
            return Classification.PASS, None
        return Classification.DEGRADED_PASS, "; ".join(reasons)

    if isinstance(error, EnvironmentSkipped):
        return Classification.ENVIRONMENT_SKIP, str(error)

    return Classification.FAIL, f"{type(error).__name__}: {error}"


# ---------------------------------------------------------------------------
# 実行コンテキスト
# ---------------------------------------------------------------------------

@dataclass
class CheckContext:
    """チェック関数に渡される実行コンテキスト。

    Attributes:
        ui: アクティブなセッションに束縛された Interactor
        session: 実行中のセッション
        policies: プロファイルの待機ポリシー集合
        profile: 実行中のプロファイル
        degraded: 記録された縮退理由
    """

    ui: Interactor
    session: DeviceSession
    policies: WaitPolicySet
    profile: Profile
    degraded: list[str] = field(default_factory=list)

    @property
    def log(self) -> logging.LoggerAdapter:
        return self.session.log

    def degrade(self, reason: str) -> None:
        """任意の分岐が利用できなかったことを記録する。"""
        self.degraded.append(reason)
        self.log.warning("縮退: %s", reason)

    def skip(self, reason: str) -> None:
        """環境要因によりチェックを適用外として終了する。

        Raises:
            EnvironmentSkipped: 常に送出する
        """
        raise EnvironmentSkipped(reason)

    def expect(self, condition: bool, reason: str) -> None:
        """条件が成立しない場合にチェックを失敗させる。

        Raises:
            CheckFailed: condition が偽の場合
        """
        if not condition:
            raise CheckFailed(reason)


CheckFunc = Callable[[CheckContext], None]


# ---------------------------------------------------------------------------
# 実行結果
# ---------------------------------------------------------------------------

@dataclass
class ScenarioResult:
    """1チェックの実行結果。

    Attributes:
        name: チェック名
        classification: 結果分類
        reason: 分類理由（PASS の場合は None）
        degraded_reasons: 記録された縮退理由
        actions: 実行された操作の記録
        tags: チェックのタグ
        duration_ms: 実行時間（ミリ秒）
        started_at: 実行開始日時
        finished_at: 実行終了日時
        screenshot_path: 失敗時スクリーンショットのパス
        page_source_path: 失敗時 UI 階層ダンプのパス
        teardown_warnings: 終了処理で記録された警告
    """

    name: str
    classification: Classification
    reason: Optional[str] = None
    degraded_reasons: list[str] = field(default_factory=list)
    actions: list[ActionRecord] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    duration_ms: float = 0.0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    screenshot_path: Optional[Path] = None
    page_source_path: Optional[Path] = None
    teardown_warnings: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.classification is Classification.FAIL


# ---------------------------------------------------------------------------
# Orchestrator 本体
# ---------------------------------------------------------------------------

class Orchestrator:
    """チェックをセッションスコープ内で実行し、結果を分類する。

    使用例::

        orchestrator = Orchestrator(SessionManager(), artifacts)
        result = orchestrator.run(registry.get("alchemy.hint-reward"), profile)
    """

    def __init__(
        self,
        manager: Optional[SessionManager] = None,
        artifacts: Optional[ArtifactsManager] = None,
    ) -> None:
        """Orchestrator を初期化する。

        Args:
            manager: セッション管理。None の場合は既定の SessionManager
            artifacts: 成果物管理。None の場合は失敗時の成果物を保存しない
        """
        self._manager = manager or SessionManager()
        self._artifacts = artifacts

    # -------------------------------------------------------------------
    # パブリック API
    # -------------------------------------------------------------------

    def run(self, check: RegisteredCheck, profile: Profile) -> ScenarioResult:
        """1つのチェックを専用のセッションで実行する。

        Args:
            check: 実行するチェック
            profile: 接続先・待機設定を含むプロファイル

        Returns:
            分類済みの ScenarioResult

        Raises:
            InvalidLocatorError: チェック内のロケータ記述が不正な場合
            SessionStateError: アクティブでないセッションで操作した場合
        """
        logger.info("チェックを開始します: %s", check.name)
        started_at = datetime.now()
        start = time.perf_counter()

        error: Optional[BaseException] = None
        degraded: list[str] = []
        actions: list[ActionRecord] = []
        teardown_warnings: list[str] = []
        screenshot: Optional[Path] = None
        page_source: Optional[Path] = None

        try:
            session = self._manager.open(profile.session)
        except (ServerConnectionError, LaunchError) as exc:
            logger.error("セッションを開始できませんでした: %s", exc)
            error = exc
        else:
            ui = Interactor(session)
            ctx = CheckContext(
                ui=ui,
                session=session,
                policies=profile.policies(),
                profile=profile,
                degraded=degraded,
            )
            try:
                check.func(ctx)
            except (InvalidLocatorError, SessionStateError):
                raise
            except EnvironmentSkipped as exc:
                error = exc
            except Exception as exc:
                error = exc
                session.log.error("チェックが失敗しました: %s: %s", type(exc).__name__, exc)
                screenshot, page_source = self._capture_failure(session, check.name)
            finally:
                actions = list(ui.history)
                self._manager.close(session)
                teardown_warnings = list(session.teardown_warnings)

        classification, reason = classify(error, degraded)
        duration = (time.perf_counter() - start) * 1000

        result = ScenarioResult(
            name=check.name,
            classification=classification,
            reason=reason,
            degraded_reasons=list(degraded),
            actions=actions,
            tags=list(check.info.tags),
            duration_ms=duration,
            started_at=started_at,
            finished_at=datetime.now(),
            screenshot_path=screenshot,
            page_source_path=page_source,
            teardown_warnings=teardown_warnings,
        )
        logger.info(
            "チェックが終了しました: %s → %s%s",
            check.name, classification.value, f"（{reason}）" if reason else "",
        )
        return result

    def run_all(
        self, checks: Iterable[RegisteredCheck], profile: Profile,
    ) -> list[ScenarioResult]:
        """複数のチェックを順番に実行する。チェックごとに新しいセッションを使う。"""
        return [self.run(check, profile) for check in checks]

    # -------------------------------------------------------------------
    # 内部処理
    # -------------------------------------------------------------------

    def _capture_failure(
        self, session: DeviceSession, name: str,
    ) -> tuple[Optional[Path], Optional[Path]]:
        """セッションが有効なうちに失敗時の画面とUI階層を保存する。"""
        if self._artifacts is None or self._artifacts.run_dir is None:
            return None, None

        driver: Any = session.driver
        try:
            screenshot = self._artifacts.save_screenshot(driver, name)
            page_source = self._artifacts.save_page_source(driver, name)
        except (WebDriverException, HTTPError, OSError) as exc:
            session.log.warning("失敗時の成果物を保存できませんでした: %s", exc)
            return None, None
        return screenshot, page_source
