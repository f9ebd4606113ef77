"""
Alchemy チェック — 広告視聴によるヒント付与

ゲームを開始してヒントを1つ使い、「Ваши подсказки」セクションから
広告を視聴してヒント数が回復することを確認する。

広告の在庫や地域設定により、ヒントセクションや「Смотреть」ボタンが
表示されないことがある。その場合は DegradedPass として扱う。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.locator import by_text
from ..core.waits import WaitPurpose
from .registry import CheckInfo

if TYPE_CHECKING:
    from ..core.orchestrator import CheckContext
    from .registry import CheckRegistry

START_HINT = 2
EXPECTED_HINTS_COUNT = 4

PLAY_BUTTON = by_text("Играть")
HINT_BUTTON = by_text(str(START_HINT))
HINTS_SECTION = by_text("Ваши подсказки")
WATCH_BUTTON = by_text("Смотреть")
REWARDED_HINTS = by_text(str(EXPECTED_HINTS_COUNT))


def hint_reward(ctx: CheckContext) -> None:
    """広告視聴後にヒント数が増えることを確認する。"""
    ui = ctx.ui
    feedback = ctx.policies.for_purpose(WaitPurpose.UI_FEEDBACK)

    ctx.log.info("ゲームを開始します")
    ui.click(PLAY_BUTTON, feedback)
    ui.click(HINT_BUTTON, feedback)

    if not ui.wait_visible(HINTS_SECTION, feedback):
        ctx.degrade("ヒントセクションが表示されないため、広告視聴の確認を省略しました")
        return

    if not ui.click_soft(WATCH_BUTTON, feedback):
        ctx.degrade("「Смотреть」ボタンが利用できないため、ヒント数の確認を省略しました")
        return

    # 広告の再生完了を待つため長いプリセットを使う
    text = ui.read_text(REWARDED_HINTS, ctx.policies.for_purpose(WaitPurpose.NETWORK_CONTENT))
    ctx.expect(
        text == str(EXPECTED_HINTS_COUNT),
        f"ヒント数が期待値と異なります: 期待={EXPECTED_HINTS_COUNT}, 実際={text!r}",
    )
    ctx.log.info("ヒント数が %s に増えました", text)


def register(registry: CheckRegistry) -> None:
    registry.register(
        "alchemy.hint-reward",
        hint_reward,
        info=CheckInfo(
            name="alchemy.hint-reward",
            description="広告視聴後にヒントが追加されることを確認する",
            app="alchemy",
            tags=["end-to-end"],
        ),
    )
