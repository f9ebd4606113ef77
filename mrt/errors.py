"""
エラー定義 — ハーネス全体で共有する例外の階層

ハード操作の失敗・接続失敗・プログラミングエラーを型で区別する。
ソフト操作はこれらの例外を送出せず、bool / None で結果を返す。

主な構成:
  - HarnessError: 全ハーネス例外の基底クラス
  - ServerConnectionError / LaunchError: セッション確立の失敗（致命的）
  - ElementNotFound / ElementNotInteractable / CollectionTimeout / TransportError:
    ハード操作の失敗（シナリオの Fail）
  - InvalidLocatorError / SessionStateError: 呼び出し側のプログラミングエラー
  - CheckFailed / DeepLinkUnresolved: チェック内の検証失敗
  - EnvironmentSkipped: 環境要因によるスキップ（制御フロー用シグナル）
  - TeardownWarning: 後片付けの失敗（ログのみ、送出しない）
"""

from __future__ import annotations

from typing import Optional


class HarnessError(Exception):
    """ハーネスが送出する例外の基底クラス。"""


# ---------------------------------------------------------------------------
# セッション確立
# ---------------------------------------------------------------------------

class ServerConnectionError(HarnessError, ConnectionError):
    """自動化サーバーに到達できなかった場合のエラー。"""


class LaunchError(HarnessError):
    """対象アプリを起動（前面化）できなかった場合のエラー。"""


# ---------------------------------------------------------------------------
# ハード操作の失敗
# ---------------------------------------------------------------------------

class ElementError(HarnessError):
    """要素操作の失敗を表す基底クラス。

    Attributes:
        target: 対象ロケータの説明文字列
        timeout_ms: 適用された待機ポリシーのタイムアウト（ミリ秒）
    """

    def __init__(self, message: str, *, target: str = "", timeout_ms: Optional[int] = None) -> None:
        super().__init__(message)
        self.target = target
        self.timeout_ms = timeout_ms


class ElementNotFound(ElementError):
    """要素が待機時間内に見つからなかった（可視にならなかった）場合のエラー。"""


class ElementNotInteractable(ElementError):
    """要素は存在するが待機時間内に操作可能にならなかった場合のエラー。"""


class CollectionTimeout(ElementError):
    """要素コレクションの件数が待機時間内に閾値を超えなかった場合のエラー。"""


class TransportError(HarnessError):
    """自動化サーバーとの通信でコマンドが失敗した場合のエラー。"""


# ---------------------------------------------------------------------------
# プログラミングエラー
# ---------------------------------------------------------------------------

class InvalidLocatorError(HarnessError, ValueError):
    """ロケータ記述が不正な場合のエラー。シナリオ側では捕捉しない。"""


class SessionStateError(HarnessError, RuntimeError):
    """Active 以外の状態のセッションで操作しようとした場合のエラー。"""


class ConfigError(HarnessError, ValueError):
    """プロファイル設定の読み込み・検証に失敗した場合のエラー。"""


# ---------------------------------------------------------------------------
# チェック内の検証
# ---------------------------------------------------------------------------

class CheckFailed(HarnessError):
    """チェック内のハードアサーションが成立しなかった場合のエラー。"""


class DeepLinkUnresolved(HarnessError):
    """ディープリンクが受理されたが、どの結果画面にも到達しなかった場合のエラー。"""


class EnvironmentSkipped(Exception):
    """前提条件（環境・プラットフォーム方針）によりシナリオが適用外になったことを示す。

    HarnessError ではない。Orchestrator が EnvironmentSkip に分類する。
    """


# ---------------------------------------------------------------------------
# 警告
# ---------------------------------------------------------------------------

class TeardownWarning(UserWarning):
    """アプリ終了・接続解放の失敗。ログに記録するのみで送出しない。"""
