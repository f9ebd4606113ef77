"""
チェックレジストリ — チェック関数の登録・検索・一覧

名前付きのチェック関数とそのメタ情報（対象アプリ・タグ）を管理する。

主な構成:
  - CheckInfo: チェックのメタ情報（名前、説明、対象アプリ、タグ）
  - RegisteredCheck: 登録済みチェック（名前・関数・メタ情報の組）
  - CheckRegistry: チェックの登録・検索・一覧
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..core.orchestrator import CheckFunc

logger = logging.getLogger(__name__)

KNOWN_ISSUE_TAG = "known-issue"


# ---------------------------------------------------------------------------
# チェックメタ情報
# ---------------------------------------------------------------------------

@dataclass
class CheckInfo:
    """チェックのメタ情報。

    list_all() で返され、CLI の list-checks コマンドで一覧表示に使用する。

    Attributes:
        name: チェック名（<アプリ>.<シナリオ> 形式）
        description: チェックの説明文
        app: 対象アプリ（alchemy, vkvideo 等）
        tags: タグ（known-issue 等）
    """

    name: str
    description: str
    app: str
    tags: list[str] = field(default_factory=list)

    @property
    def known_issue(self) -> bool:
        """既知の不具合として扱うチェックかどうか。"""
        return KNOWN_ISSUE_TAG in self.tags


@dataclass(frozen=True)
class RegisteredCheck:
    """登録済みチェック。Orchestrator.run() に渡す単位。"""

    name: str
    func: CheckFunc
    info: CheckInfo


# ---------------------------------------------------------------------------
# CheckRegistry 本体
# ---------------------------------------------------------------------------

class CheckRegistry:
    """チェック関数の登録・検索・一覧を管理するレジストリ。

    使用例::

        registry = CheckRegistry()
        registry.register("alchemy.hint-reward", hint_reward, info=CheckInfo(...))
        check = registry.get("alchemy.hint-reward")
    """

    def __init__(self) -> None:
        self._checks: dict[str, RegisteredCheck] = {}

    def register(
        self,
        name: str,
        func: CheckFunc,
        *,
        info: Optional[CheckInfo] = None,
    ) -> None:
        """チェック関数を登録する。

        同名のチェックが既に登録されている場合は上書きする（警告を出力）。

        Args:
            name: チェック名
            func: CheckContext を受け取るチェック関数
            info: メタ情報。None の場合は名前の接頭辞を対象アプリとする

        Raises:
            TypeError: func が呼び出し可能でない場合
        """
        if not callable(func):
            raise TypeError(f"チェックは呼び出し可能である必要があります: {type(func).__name__}")

        if name in self._checks:
            logger.warning("チェック '%s' を上書きします", name)

        if info is None:
            info = CheckInfo(
                name=name,
                description=f"{name} チェック",
                app=name.split(".", 1)[0],
            )

        self._checks[name] = RegisteredCheck(name=name, func=func, info=info)
        logger.debug("チェック '%s' を登録しました", name)

    def get(self, name: str) -> RegisteredCheck:
        """名前で登録済みチェックを取得する。

        Raises:
            KeyError: 指定名のチェックが未登録の場合
        """
        if name not in self._checks:
            registered = ", ".join(self.names)
            raise KeyError(
                f"チェック '{name}' は登録されていません。"
                f"登録済みチェック: [{registered}]"
            )
        return self._checks[name]

    def list_all(self) -> list[CheckInfo]:
        """登録済み全チェックのメタ情報を名前順で返す。"""
        return sorted((c.info for c in self._checks.values()), key=lambda i: i.name)

    def has(self, name: str) -> bool:
        return name in self._checks

    @property
    def names(self) -> list[str]:
        """登録済み全チェック名をソート済みリストで返す。"""
        return sorted(self._checks.keys())
