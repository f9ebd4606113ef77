"""
チェックライブラリモジュール

組み込みチェック（Alchemy / VK Video）とチェックレジストリを提供する。

主要エクスポート:
  - CheckRegistry: チェックの登録・検索・一覧
  - CheckInfo: チェックのメタ情報
  - RegisteredCheck: 登録済みチェック
  - create_default_registry: 組み込みチェック登録済みレジストリの生成
"""

from .registry import KNOWN_ISSUE_TAG, CheckInfo, CheckRegistry, RegisteredCheck

__all__ = [
    "KNOWN_ISSUE_TAG",
    "CheckInfo",
    "CheckRegistry",
    "RegisteredCheck",
    "create_default_registry",
]


def create_default_registry() -> CheckRegistry:
    """組み込みチェックが全て登録された CheckRegistry を生成する。

    Returns:
        全組み込みチェックが登録された CheckRegistry
    """
    from . import alchemy, vkvideo

    registry = CheckRegistry()
    alchemy.register(registry)
    vkvideo.register(registry)
    return registry
