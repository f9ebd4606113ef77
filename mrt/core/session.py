"""
Session — デバイスセッション管理

Appium サーバーへの接続・対象アプリの起動・終了・接続解放を担当する。
1回のテスト実行につき1セッションを保持し、終了処理は例外発生時も必ず実行する。

主な機能:
  - SessionConfig: 接続設定（Appium capabilities の元データ）
  - SessionState: セッション状態（CREATED → ACTIVE → TERMINATED / CREATED → FAILED）
  - DeviceSession: セッション本体（driver・状態・セッション単位のロガー）
  - SessionManager: open / close / scope によるライフサイクル管理
"""

from __future__ import annotations

import enum
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from appium import webdriver
from appium.options.android import UiAutomator2Options
from appium.options.common import AppiumOptions
from appium.webdriver.applicationstate import ApplicationState
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from selenium.common.exceptions import SessionNotCreatedException, WebDriverException
from urllib3.exceptions import HTTPError

from ..errors import LaunchError, ServerConnectionError, SessionStateError, TeardownWarning
from .waits import WaitPolicy, wait_until

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 接続設定
# ---------------------------------------------------------------------------

class SessionConfig(BaseModel):
    """デバイスセッションの接続設定。セッション開始後は変更できない。

    フィールド名は Appium capability 名に揃えている。
    udid（物理端末）と deviceName（エミュレータ等）のいずれかは必須。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    platformName: str = Field(default="Android", description="プラットフォーム名")
    platformVersion: str = Field(..., description="プラットフォームバージョン")
    udid: Optional[str] = Field(default=None, description="端末の UDID（物理端末向け）")
    deviceName: Optional[str] = Field(default=None, description="端末名（エミュレータ等）")
    automationName: str = Field(default="UiAutomator2", description="自動化エンジン名")
    appPackage: str = Field(..., min_length=1, description="アプリのパッケージ ID")
    appActivity: str = Field(..., min_length=1, description="アプリの起動 Activity")
    serverUrl: str = Field(default="http://localhost:4723", description="Appium サーバー URL")
    noReset: bool = Field(default=True, description="セッション開始時にアプリ状態をリセットしない")
    autoGrantPermissions: bool = Field(default=False, description="権限を自動付与する")
    launchTimeoutMs: int = Field(default=20_000, gt=0, description="アプリ前面化の待機上限（ミリ秒）")

    @field_validator("platformVersion", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        # YAML では 15.0 が数値として読み込まれる
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @model_validator(mode="after")
    def validate_device(self) -> "SessionConfig":
        if not self.udid and not self.deviceName:
            raise ValueError("udid または deviceName のいずれかを指定してください")
        return self

    @property
    def device_label(self) -> str:
        """ログ用の端末識別子。"""
        return self.udid or self.deviceName or "unknown"

    def capabilities(self) -> dict[str, Any]:
        """W3C 形式の capabilities 辞書を生成する。

        Returns:
            appium: 接頭辞付きの capabilities 辞書
        """
        caps: dict[str, Any] = {
            "platformName": self.platformName,
            "appium:platformVersion": self.platformVersion,
            "appium:automationName": self.automationName,
            "appium:appPackage": self.appPackage,
            "appium:appActivity": self.appActivity,
            "appium:noReset": self.noReset,
            "appium:autoGrantPermissions": self.autoGrantPermissions,
        }
        if self.udid:
            caps["appium:udid"] = self.udid
        if self.deviceName:
            caps["appium:deviceName"] = self.deviceName
        return caps


def build_options(config: SessionConfig) -> AppiumOptions:
    """SessionConfig から Appium の Options オブジェクトを生成する。

    Android の場合は UiAutomator2Options、それ以外は汎用の AppiumOptions を使う。
    """
    if config.platformName.lower() == "android":
        options: AppiumOptions = UiAutomator2Options()
    else:
        options = AppiumOptions()
    options.load_capabilities(config.capabilities())
    return options


def _create_remote_driver(server_url: str, options: AppiumOptions) -> Any:
    return webdriver.Remote(command_executor=server_url, options=options)


# ---------------------------------------------------------------------------
# セッション状態
# ---------------------------------------------------------------------------

class SessionState(enum.Enum):
    """デバイスセッションの状態。前方向にのみ遷移する。"""

    CREATED = "created"
    ACTIVE = "active"
    TERMINATED = "terminated"
    FAILED = "failed"


class SessionLogger(logging.LoggerAdapter):
    """メッセージに [端末/パッケージ] の接頭辞を付けるセッション単位のロガー。"""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        return f"[{self.extra['device']}/{self.extra['package']}] {msg}", kwargs


# ---------------------------------------------------------------------------
# DeviceSession 本体
# ---------------------------------------------------------------------------

class DeviceSession:
    """1台の端末・1つのアプリに対するセッション。

    SessionManager が排他的に所有し、複数のテスト実行で共有しない。
    """

    def __init__(self, config: SessionConfig) -> None:
        self._config = config
        self._state = SessionState.CREATED
        self._driver: Optional[Any] = None
        self.teardown_warnings: list[str] = []
        self.log = SessionLogger(
            logger, {"device": config.device_label, "package": config.appPackage},
        )

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        """現在のセッション状態を返す。"""
        return self._state

    @property
    def is_active(self) -> bool:
        """セッションがアクティブかどうかを返す。"""
        return self._state is SessionState.ACTIVE

    @property
    def driver(self) -> Any:
        """WebDriver を返す。

        Raises:
            SessionStateError: セッションがアクティブでない場合
        """
        self.require_active()
        return self._driver

    def require_active(self) -> None:
        """セッションがアクティブであることを確認する。

        Raises:
            SessionStateError: セッションがアクティブでない場合
        """
        if self._state is not SessionState.ACTIVE:
            raise SessionStateError(
                f"セッションがアクティブではありません（state={self._state.value}）"
            )


# ---------------------------------------------------------------------------
# SessionManager
# ---------------------------------------------------------------------------

class SessionManager:
    """デバイスセッションの開始・終了を管理する。

    使用例::

        manager = SessionManager()
        with manager.scope(config) as session:
            ...
    """

    def __init__(
        self,
        driver_factory: Optional[Callable[[str, AppiumOptions], Any]] = None,
        launch_poll_ms: int = 500,
    ) -> None:
        """SessionManager を初期化する。

        Args:
            driver_factory: (server_url, options) から WebDriver を生成する関数。
                            None の場合は appium.webdriver.Remote を使用する
            launch_poll_ms: アプリ前面化確認のポーリング間隔（ミリ秒）
        """
        self._driver_factory = driver_factory or _create_remote_driver
        self._launch_poll_ms = launch_poll_ms

    # -------------------------------------------------------------------
    # open
    # -------------------------------------------------------------------

    def open(self, config: SessionConfig) -> DeviceSession:
        """サーバーに接続し、対象アプリを前面化したセッションを返す。

        失敗時は生成済みの driver を解放してから例外を送出する。
        呼び出し側から ACTIVE 未満の中途半端な状態は観測されない。

        Args:
            config: 接続設定

        Returns:
            ACTIVE 状態の DeviceSession

        Raises:
            ServerConnectionError: サーバーに到達できない場合、または起動中に接続が切れた場合
            LaunchError: セッション生成またはアプリの前面化に失敗した場合
        """
        session = DeviceSession(config)
        session.log.info("Appium サーバーに接続しています: %s", config.serverUrl)

        try:
            driver = self._driver_factory(config.serverUrl, build_options(config))
        except SessionNotCreatedException as exc:
            session._state = SessionState.FAILED
            raise LaunchError(f"セッションを生成できませんでした: {exc.msg or exc}") from exc
        except (HTTPError, OSError, WebDriverException) as exc:
            session._state = SessionState.FAILED
            raise ServerConnectionError(
                f"Appium サーバーに接続できませんでした: {config.serverUrl} — {exc}"
            ) from exc

        try:
            # 待機はすべて WaitPolicy で行うため、暗黙の待機は無効化する
            driver.implicitly_wait(0)
            driver.activate_app(config.appPackage)
            self._wait_for_foreground(driver, config)
        except WebDriverException as exc:
            self._abort_open(session, driver)
            raise LaunchError(
                f"アプリを起動できませんでした: {config.appPackage} — {exc}"
            ) from exc
        except (HTTPError, OSError) as exc:
            self._abort_open(session, driver)
            raise ServerConnectionError(
                f"アプリの起動中に Appium サーバーとの接続が切れました: {config.serverUrl} — {exc}"
            ) from exc
        except BaseException:
            self._abort_open(session, driver)
            raise

        session._driver = driver
        session._state = SessionState.ACTIVE
        session.log.info("セッションを開始しました")
        return session

    def _abort_open(self, session: DeviceSession, driver: Any) -> None:
        session._state = SessionState.FAILED
        self._quit_driver(session, driver)
        session.log.error("セッションの開始に失敗したため接続を解放しました")

    def _wait_for_foreground(self, driver: Any, config: SessionConfig) -> None:
        policy = WaitPolicy(
            name="launch", timeout_ms=config.launchTimeoutMs, poll_ms=self._launch_poll_ms,
        )
        result = wait_until(
            driver,
            lambda d: d.query_app_state(config.appPackage)
            == ApplicationState.RUNNING_IN_FOREGROUND,
            policy,
            description=f"{config.appPackage} の前面化",
        )
        if not result.ok:
            raise LaunchError(
                f"アプリが {config.launchTimeoutMs}ms 以内に前面化しませんでした: {config.appPackage}"
            )

    # -------------------------------------------------------------------
    # close
    # -------------------------------------------------------------------

    def close(self, session: DeviceSession) -> None:
        """アプリを終了し、接続を解放する。

        アプリ終了の失敗は TeardownWarning としてログに記録し、送出しない。
        接続の解放はアプリ終了の成否に関わらず必ず行う。
        ACTIVE 以外のセッションに対しては何もしない（冪等）。

        Args:
            session: 終了するセッション
        """
        if session.state is not SessionState.ACTIVE:
            return

        driver = session._driver
        try:
            driver.terminate_app(session.config.appPackage)
        except Exception as exc:
            _record_teardown_warning(session, f"アプリを正常に終了できませんでした: {exc}")
        finally:
            self._quit_driver(session, driver)
            session._driver = None
            session._state = SessionState.TERMINATED
            session.log.info("セッションを終了しました")

    def _quit_driver(self, session: DeviceSession, driver: Any) -> None:
        try:
            driver.quit()
        except Exception as exc:
            _record_teardown_warning(session, f"接続を正常に解放できませんでした: {exc}")

    # -------------------------------------------------------------------
    # scope
    # -------------------------------------------------------------------

    @contextmanager
    def scope(self, config: SessionConfig) -> Iterator[DeviceSession]:
        """セッションを開始し、どの経路で抜けても終了するコンテキストマネージャ。

        Args:
            config: 接続設定

        Yields:
            ACTIVE 状態の DeviceSession
        """
        session = self.open(config)
        try:
            yield session
        finally:
            self.close(session)


def _record_teardown_warning(session: DeviceSession, message: str) -> None:
    session.teardown_warnings.append(message)
    session.log.warning("%s: %s", TeardownWarning.__name__, message)
