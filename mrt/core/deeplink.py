"""
ディープリンク — URI の組み立てと到達先の検証

プロファイルの固定接頭辞と識別子からディープリンク URI を組み立て、
1回のコマンドで送信したうえで、アプリがいずれかの結果画面
（エラー表示・ホーム画面・閉じるボタン）に到達したかを確認する。

判定:
  - プラットフォームが拒否 → EnvironmentSkipped
  - 受理され、いずれかの結果画面が可視 → 到達した画面名を返す
  - 受理されたが、どの結果画面も現れない → DeepLinkUnresolved
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping

from ..errors import DeepLinkUnresolved, EnvironmentSkipped
from .interaction import Interactor
from .locator import ANY_ELEMENT, Locator
from .waits import WaitPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeepLinkTarget:
    """ディープリンクの送信先。

    Attributes:
        uri: 送信する URI
        package: 受信アプリのパッケージ ID
    """

    uri: str
    package: str


def build_deep_link(prefix: str, identifier: str) -> str:
    """固定接頭辞と識別子からディープリンク URI を組み立てる。

    Args:
        prefix: URI の固定部分（例: vk://vk.com/video）
        identifier: 対象の識別子（例: -999999999_999999999）

    Returns:
        組み立てた URI

    Raises:
        ValueError: 接頭辞がスキームを含まない場合、または識別子が空・空白を含む場合
    """
    if "://" not in prefix:
        raise ValueError(f"ディープリンクの接頭辞にスキームがありません: {prefix!r}")
    if not identifier or any(ch.isspace() for ch in identifier):
        raise ValueError(f"ディープリンクの識別子が不正です: {identifier!r}")
    uri = f"{prefix}{identifier}"
    logger.debug("ディープリンクを組み立てました: %s", uri)
    return uri


def verify_deep_link(
    ui: Interactor,
    target: DeepLinkTarget,
    outcomes: Mapping[str, Locator],
    policy: WaitPolicy,
) -> str:
    """ディープリンクを送信し、いずれかの結果画面に到達したことを確認する。

    Args:
        ui: アクティブなセッションの Interactor
        target: 送信先
        outcomes: 結果画面名 → 判定用 Locator（確認順）
        policy: 結果画面を待つ待機ポリシー

    Returns:
        到達した結果画面の名前

    Raises:
        EnvironmentSkipped: プラットフォームがディープリンクを受理しなかった場合
        DeepLinkUnresolved: 受理されたが、どの結果画面も現れなかった場合
    """
    if not ui.open_deep_link(target.uri, target.package):
        raise EnvironmentSkipped(
            f"ディープリンクがプラットフォームに受理されませんでした: {target.uri}"
        )

    if not ui.is_visible(ANY_ELEMENT):
        ui.log.info("ディープリンク直後は表示要素がありません。結果画面を待機します")

    reached = ui.wait_any_visible(outcomes, policy)
    if reached is None:
        names = ", ".join(outcomes)
        raise DeepLinkUnresolved(
            f"ディープリンク {target.uri} の結果画面（{names}）がいずれも "
            f"{policy.timeout_ms}ms 以内に表示されませんでした"
        )

    ui.log.info("ディープリンクの結果画面に到達しました: %s", reached)
    return reached
