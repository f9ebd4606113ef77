"""
プロファイル設定 — YAML プロファイルの読み込み・検証と上書き

1つの対象アプリ・端末の組を「プロファイル」として YAML で記述する。
ruamel.yaml で読み込み、Pydantic v2 モデルで検証する。

上書きの優先順位: CLI 引数 > 環境変数 > YAML ファイル

環境変数一覧:
  MRT_SERVER_URL       : Appium サーバー URL（session.serverUrl）
  MRT_DEVICE_UDID      : 端末の UDID（session.udid）
  MRT_DEVICE_NAME      : 端末名（session.deviceName）
  MRT_PLATFORM_VERSION : プラットフォームバージョン（session.platformVersion）
  MRT_ARTIFACTS_DIR    : 成果物ディレクトリ（artifactsDir）
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .core.session import SessionConfig
from .core.waits import WaitPolicy, WaitPolicySet
from .errors import ConfigError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

ENV_OVERRIDES: dict[str, str] = {
    "MRT_SERVER_URL": "session.serverUrl",
    "MRT_DEVICE_UDID": "session.udid",
    "MRT_DEVICE_NAME": "session.deviceName",
    "MRT_PLATFORM_VERSION": "session.platformVersion",
    "MRT_ARTIFACTS_DIR": "artifactsDir",
}
"""環境変数名 → プロファイル内のドット区切りパス。"""


# ---------------------------------------------------------------------------
# プロファイルモデル
# ---------------------------------------------------------------------------

class WaitsConfig(BaseModel):
    """待機プリセットの設定。"""

    model_config = ConfigDict(extra="forbid")

    defaultMs: int = Field(default=10_000, ge=0, description="default プリセットのタイムアウト（ミリ秒）")
    extendedMs: int = Field(default=60_000, ge=0, description="extended プリセットのタイムアウト（ミリ秒）")
    pollMs: int = Field(default=200, gt=0, description="ポーリング間隔（ミリ秒）")

    def policy_set(self) -> WaitPolicySet:
        """設定値から WaitPolicySet を生成する。"""
        return WaitPolicySet(
            default=WaitPolicy(name="default", timeout_ms=self.defaultMs, poll_ms=self.pollMs),
            extended=WaitPolicy(name="extended", timeout_ms=self.extendedMs, poll_ms=self.pollMs),
        )


class DeepLinkConfig(BaseModel):
    """ディープリンクの設定。"""

    model_config = ConfigDict(extra="forbid")

    prefix: str = Field(..., min_length=1, description="URI の固定部分（例: vk://vk.com/video）")

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if "://" not in v:
            raise ValueError(f"スキームを含む URI 接頭辞を指定してください: {v!r}")
        return v


class Profile(BaseModel):
    """対象アプリ・端末のプロファイル。"""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="プロファイル名")
    session: SessionConfig = Field(..., description="セッション接続設定")
    waits: WaitsConfig = Field(default_factory=WaitsConfig, description="待機プリセット")
    deepLink: Optional[DeepLinkConfig] = Field(default=None, description="ディープリンク設定")
    artifactsDir: str = Field(default="artifacts", min_length=1, description="成果物ディレクトリ")

    def policies(self) -> WaitPolicySet:
        return self.waits.policy_set()


# ---------------------------------------------------------------------------
# バリデーションエラー表現
# ---------------------------------------------------------------------------

@dataclass
class ProfileValidationError:
    """プロファイルの検証で検出されたエラー。

    Attributes:
        message: エラーメッセージ
        location: エラー箇所（フィールドパス等）
        line: YAML ファイル内の行番号（取得可能な場合）
    """

    message: str
    location: str = ""
    line: Optional[int] = None


# ---------------------------------------------------------------------------
# ProfileLoader 本体
# ---------------------------------------------------------------------------

class ProfileLoader:
    """YAML プロファイルの読み込み・検証を担当するローダー。

    使用例::

        loader = ProfileLoader()
        profile = loader.load(Path("profiles/vkvideo.yaml"),
                              overrides={"session.serverUrl": "http://10.0.0.5:4723"})
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        """ローダーを初期化する。

        Args:
            env: 上書きに使う環境変数。None の場合は os.environ
        """
        self._yaml = YAML(typ="safe")
        self._env = os.environ if env is None else env

    # ----- load -----

    def load(
        self,
        path: Path,
        *,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> Profile:
        """プロファイルを読み込み、環境変数・CLI 引数の上書きを適用して検証する。

        Args:
            path: 読み込む YAML ファイルのパス
            overrides: ドット区切りパス → 値 の上書き（CLI 引数）。値が None のものは無視する

        Returns:
            検証済みの Profile

        Raises:
            ConfigError: ファイルが存在しない、YAML 構文エラー、またはスキーマ検証エラーの場合
        """
        data = self._read(Path(path))
        data = apply_overrides(data, env_overrides(self._env))
        if overrides:
            data = apply_overrides(data, overrides)

        try:
            profile = Profile(**data)
        except PydanticValidationError as e:
            raise ConfigError(f"プロファイルの検証エラー: {e}") from e

        logger.info(
            "プロファイルを読み込みました: %s（%s, %s）",
            profile.name, profile.session.appPackage, profile.session.device_label,
        )
        return profile

    # ----- validate -----

    def validate(self, path: Path) -> list[ProfileValidationError]:
        """YAML ファイルのスキーマ検証を行い、違反箇所を報告する。

        上書きは適用せず、ファイルの内容のみを検証する。

        Args:
            path: 検証する YAML ファイルのパス

        Returns:
            検出されたエラーのリスト。エラーがない場合は空リスト
        """
        path = Path(path)

        if not path.exists():
            return [ProfileValidationError(
                message=f"プロファイルが見つかりません: {path}", location="file",
            )]

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except YAMLError as e:
            line = None
            if getattr(e, "problem_mark", None) is not None:
                line = e.problem_mark.line + 1
            return [ProfileValidationError(
                message=f"YAML 構文エラー: {e}", location="yaml", line=line,
            )]

        if not isinstance(data, dict):
            return [ProfileValidationError(
                message="プロファイルの最上位はマッピングである必要があります", location="file",
            )]

        errors: list[ProfileValidationError] = []
        try:
            Profile(**data)
        except PydanticValidationError as e:
            for err in e.errors():
                loc_parts = [str(part) for part in err.get("loc", [])]
                errors.append(ProfileValidationError(
                    message=err.get("msg", "不明なエラー"),
                    location=" -> ".join(loc_parts) if loc_parts else "unknown",
                ))
        return errors

    # ----- ユーティリティ -----

    def _read(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            raise ConfigError(f"プロファイルが見つかりません: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except YAMLError as e:
            line_info = ""
            if getattr(e, "problem_mark", None) is not None:
                mark = e.problem_mark
                line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
            raise ConfigError(f"YAML 構文エラー{line_info}: {e}") from e

        if data is None:
            raise ConfigError(f"プロファイルが空です: {path}")
        if not isinstance(data, dict):
            raise ConfigError(f"プロファイルの最上位はマッピングである必要があります: {path}")
        return data


# ---------------------------------------------------------------------------
# 上書き処理
# ---------------------------------------------------------------------------

def env_overrides(env: Mapping[str, str]) -> dict[str, str]:
    """環境変数からドット区切りパス → 値 の上書きを抽出する。空文字列は無視する。"""
    overrides: dict[str, str] = {}
    for name, dotted in ENV_OVERRIDES.items():
        value = env.get(name)
        if value:
            logger.debug("環境変数 %s で %s を上書きします", name, dotted)
            overrides[dotted] = value
    return overrides


def apply_overrides(data: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """ドット区切りパスの上書きを適用した新しい辞書を返す。

    値が None の上書きは無視する。元の辞書は変更しない。

    Args:
        data: プロファイルの生データ
        overrides: ドット区切りパス → 値

    Returns:
        上書き適用後の辞書

    Raises:
        ConfigError: 途中のパスがマッピングでない場合
    """
    result = copy.deepcopy(dict(data))
    for dotted, value in overrides.items():
        if value is None:
            continue
        *parents, leaf = dotted.split(".")
        node = result
        for key in parents:
            child = node.setdefault(key, {})
            if not isinstance(child, dict):
                raise ConfigError(f"{dotted} を上書きできません: {key} がマッピングではありません")
            node = child
        node[leaf] = value
    return result
