"""
ArtifactsManager — 実行成果物の管理

1回の実行（複数チェック）で生成される成果物の保存先を管理する。

主な機能:
  - create_run_dir(): 実行ディレクトリの作成
  - save_screenshot(): 失敗時スクリーンショットの保存
  - save_page_source(): 失敗時 UI 階層（page source）の保存
  - save_env_info(): 環境情報（秘密値マスク済み）の保存
  - mask_secrets(): 秘密値のマスク処理

ディレクトリ構造:
  artifacts/run-YYYYMMDD-HHMMSS/
    screenshots/  page_source/  logs/
    env.json  report.json  junit.xml  report.html
"""

from __future__ import annotations

import json
import logging
import platform
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from ..config import Profile

logger = logging.getLogger(__name__)


_UNSAFE_CHARS = re.compile(r"[^\w\-]")
"""ファイル名に使用できない文字を検出する正規表現。"""

_SUBDIRS = ("screenshots", "page_source", "logs")


# ---------------------------------------------------------------------------
# ArtifactsManager 本体
# ---------------------------------------------------------------------------

@dataclass
class ArtifactsManager:
    """実行成果物の管理クラス。

    Attributes:
        base_dir: 実行ディレクトリを作る親ディレクトリ
        run_dir: 現在の実行ディレクトリ（create_run_dir() 前は None）
    """

    base_dir: Path = field(default_factory=lambda: Path("artifacts"))
    run_dir: Path | None = field(default=None, init=False)

    # ----- ディレクトリ作成 -----

    def create_run_dir(self, started: datetime | None = None) -> Path:
        """run-YYYYMMDD-HHMMSS/ を base_dir 直下に用意し、以後の保存先とする。

        同じ秒に作成した場合は既存のディレクトリをそのまま使う。

        Args:
            started: 実行開始時刻（省略時は現在時刻）

        Returns:
            実行ディレクトリ
        """
        stamp = (started or datetime.now()).strftime("%Y%m%d-%H%M%S")
        run_dir = self.base_dir / f"run-{stamp}"
        for subdir in _SUBDIRS:
            (run_dir / subdir).mkdir(parents=True, exist_ok=True)

        self.run_dir = run_dir
        logger.info("成果物の保存先: %s", run_dir)
        return run_dir

    # ----- 失敗時の成果物 -----

    def save_screenshot(self, driver: Any, check_name: str) -> Path:
        """現在の画面を screenshots/<チェック名>.png に保存する。

        Args:
            driver: アクティブな WebDriver
            check_name: チェック名（ファイル名に使用）

        Returns:
            保存されたスクリーンショットのパス
        """
        path = self._require_run_dir() / "screenshots" / f"{_sanitize_name(check_name)}.png"
        path.write_bytes(driver.get_screenshot_as_png())
        logger.info("スクリーンショットを保存しました: %s", path)
        return path

    def save_page_source(self, driver: Any, check_name: str) -> Path:
        """現在の UI 階層を page_source/<チェック名>.xml に保存する。"""
        path = self._require_run_dir() / "page_source" / f"{_sanitize_name(check_name)}.xml"
        path.write_text(driver.page_source or "", encoding="utf-8")
        logger.info("UI 階層を保存しました: %s", path)
        return path

    # ----- 環境情報保存 -----

    def save_env_info(self, profile: Profile, check_names: Iterable[str]) -> Path:
        """環境情報を env.json に保存する。

        サーバー URL に含まれる認証情報はマスクされる。

        Args:
            profile: 実行に使用したプロファイル
            check_names: 実行対象のチェック名

        Returns:
            保存された env.json のパス
        """
        run_dir = self._require_run_dir()

        capabilities = {
            key: (mask_secrets(profile, value) if isinstance(value, str) else value)
            for key, value in profile.session.capabilities().items()
        }
        env_info: dict[str, Any] = {
            "profile": profile.name,
            "serverUrl": mask_secrets(profile, profile.session.serverUrl),
            "capabilities": capabilities,
            "checks": list(check_names),
            "python": sys.version.split()[0],
            "host": platform.platform(),
            "createdAt": datetime.now().isoformat(timespec="seconds"),
        }

        path = run_dir / "env.json"
        path.write_text(json.dumps(env_info, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.debug("env.json を書き出しました: %s", path)
        return path

    def _require_run_dir(self) -> Path:
        if self.run_dir is None:
            raise RuntimeError("実行ディレクトリがありません。先に create_run_dir() を呼んでください")
        return self.run_dir


# ---------------------------------------------------------------------------
# 秘密値マスク処理
# ---------------------------------------------------------------------------

def mask_secrets(profile: Profile, text: str) -> str:
    """サーバー URL の user:password@ に含まれるパスワードを *** に置き換える。"""
    for secret in _collect_secret_values(profile):
        text = text.replace(secret, "***")
    return text


def _collect_secret_values(profile: Profile) -> set[str]:
    secrets: set[str] = set()
    password = urlsplit(profile.session.serverUrl).password
    if password:
        secrets.add(password)
    return secrets


def _sanitize_name(name: str) -> str:
    """チェック名をファイル名に安全な文字列に変換する。"""
    sanitized = _UNSAFE_CHARS.sub("-", name)
    sanitized = re.sub(r"-+", "-", sanitized)
    return sanitized.strip("-") or "check"
