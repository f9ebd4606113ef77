"""
VK Video チェック — 再生・検索・不正ディープリンク

主な機能:
  - playback: フィードの先頭動画を再生し、プレーヤー要素を確認する
  - search: 検索ボタンで検索画面が開くことを確認する（既知の不具合あり）
  - invalid_deep_link: 存在しない動画 ID のディープリンクが処理されることを確認する

いずれもログイン画面が表示された場合は「あとで」ボタンで先に進む。
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.deeplink import DeepLinkTarget, build_deep_link, verify_deep_link
from ..core.locator import by_id, containing
from ..core.waits import WaitPurpose
from .registry import KNOWN_ISSUE_TAG, CheckInfo

if TYPE_CHECKING:
    from ..core.orchestrator import CheckContext
    from .registry import CheckRegistry

APP_TITLE = "VK Video"
INVALID_VIDEO_ID = "-999999999_999999999"

_ID_PREFIX = "com.vk.vkvideo:id/"

FAST_LOGIN_BUTTON = by_id(_ID_PREFIX + "fast_login_tertiary_btn")
SEARCH_BUTTON = by_id(_ID_PREFIX + "search_button")
SEARCH_FIELD = by_id(_ID_PREFIX + "search_src_text")
TITLE = by_id(_ID_PREFIX + "title")
FEED_ITEM = by_id(_ID_PREFIX + "content")
VIDEO_DISPLAY = by_id(_ID_PREFIX + "video_display")
PLAYER_CONTROL = by_id(_ID_PREFIX + "player_control")
LIKES = by_id(_ID_PREFIX + "likes")
ERROR_MESSAGE = by_id(_ID_PREFIX + "error_message")
UNAVAILABLE_TEXT = containing("Недоступно")
ERROR_TEXT = containing("Ошибка")
MAIN_CONTENT = by_id(_ID_PREFIX + "main_content")
CLOSE_BUTTON = by_id(_ID_PREFIX + "close_button")

# ディープリンクの結果画面（確認順）
DEEP_LINK_OUTCOMES = {
    "error": ERROR_TEXT,
    "home": MAIN_CONTENT,
    "dismiss": CLOSE_BUTTON,
}


# ---------------------------------------------------------------------------
# 共通処理
# ---------------------------------------------------------------------------

def skip_login_if_needed(ctx: CheckContext) -> None:
    """ログイン画面が表示されていれば「あとで」ボタンで閉じる。"""
    feedback = ctx.policies.for_purpose(WaitPurpose.UI_FEEDBACK)
    if ctx.ui.click_soft(FAST_LOGIN_BUTTON, feedback):
        ctx.log.info("ログインをスキップしました")
    else:
        ctx.log.debug("ログイン画面は表示されていません")


# ---------------------------------------------------------------------------
# チェック
# ---------------------------------------------------------------------------

def playback(ctx: CheckContext) -> None:
    """フィードの先頭動画を再生し、プレーヤーが表示されることを確認する。

    動画が表示されない場合、エラーメッセージまたは「Недоступно」表示があれば
    地域制限等の環境要因として EnvironmentSkip、それ以外は Fail とする。
    """
    ui = ctx.ui
    feedback = ctx.policies.for_purpose(WaitPurpose.UI_FEEDBACK)
    content = ctx.policies.for_purpose(WaitPurpose.NETWORK_CONTENT)

    skip_login_if_needed(ctx)

    count = ui.wait_count_above(FEED_ITEM, 1, content)
    ctx.log.info("フィードに %d 件の動画があります。先頭を再生します", count)
    ui.click(FEED_ITEM, feedback)

    if ui.wait_visible(VIDEO_DISPLAY, feedback):
        ctx.expect(ui.wait_visible(PLAYER_CONTROL, feedback), "プレーヤーの操作部が表示されません")
        ctx.expect(ui.wait_visible(LIKES, feedback), "いいねボタンが表示されません")
        title = ui.read_text(TITLE, feedback)
        ctx.log.info("動画を再生しています: %s", title)
        return

    if ui.is_visible(ERROR_MESSAGE):
        reason = ui.read_text(ERROR_MESSAGE, feedback)
        ctx.skip(f"動画を再生できません: {reason}")
    if ui.is_visible(UNAVAILABLE_TEXT):
        ctx.skip("動画は利用できません（Недоступно）")
    ctx.expect(False, "動画プレーヤーが表示されず、原因も特定できませんでした")


def search(ctx: CheckContext) -> None:
    """検索ボタンを押して検索画面が開くことを確認する。"""
    ui = ctx.ui
    feedback = ctx.policies.for_purpose(WaitPurpose.UI_FEEDBACK)

    skip_login_if_needed(ctx)

    if not ui.click_soft(SEARCH_BUTTON, feedback):
        ctx.degrade("検索ボタンを押せませんでした")

    field_visible = ui.is_visible(SEARCH_FIELD)
    button_visible = ui.is_visible(SEARCH_BUTTON)
    title_visible = ui.is_visible(TITLE)
    ctx.log.info(
        "画面の状態: search_field=%s, search_button=%s, title=%s",
        field_visible, button_visible, title_visible,
    )

    ctx.expect(
        field_visible or button_visible or title_visible,
        "アプリの画面要素が見つかりません（アプリが最小化された可能性があります）",
    )
    if field_visible:
        ctx.log.info("検索フィールドが開きました")
        return

    if title_visible and ui.read_text(TITLE, feedback) == APP_TITLE:
        ctx.degrade("検索が開かず、メイン画面のままです")
    else:
        ctx.degrade("検索フィールドが表示されませんでした")


def invalid_deep_link(ctx: CheckContext) -> None:
    """存在しない動画 ID のディープリンクが、エラー表示・ホーム画面・閉じるボタンの
    いずれかで処理されることを確認する。"""
    deep_link = ctx.profile.deepLink
    ctx.expect(deep_link is not None, "プロファイルに deepLink.prefix が設定されていません")

    skip_login_if_needed(ctx)

    target = DeepLinkTarget(
        uri=build_deep_link(deep_link.prefix, INVALID_VIDEO_ID),
        package=ctx.session.config.appPackage,
    )
    reached = verify_deep_link(
        ctx.ui,
        target,
        DEEP_LINK_OUTCOMES,
        ctx.policies.for_purpose(WaitPurpose.DEEP_LINK),
    )
    ctx.log.info("不正なディープリンクは '%s' として処理されました", reached)


def register(registry: CheckRegistry) -> None:
    registry.register(
        "vkvideo.playback",
        playback,
        info=CheckInfo(
            name="vkvideo.playback",
            description="フィードの先頭動画を再生し、プレーヤー要素を確認する",
            app="vkvideo",
            tags=["end-to-end"],
        ),
    )
    registry.register(
        "vkvideo.search",
        search,
        info=CheckInfo(
            name="vkvideo.search",
            description="検索ボタンで検索フィールドが開くことを確認する",
            app="vkvideo",
            tags=["end-to-end", KNOWN_ISSUE_TAG],
        ),
    )
    registry.register(
        "vkvideo.invalid-deep-link",
        invalid_deep_link,
        info=CheckInfo(
            name="vkvideo.invalid-deep-link",
            description="存在しない動画 ID のディープリンクが処理されることを確認する",
            app="vkvideo",
            tags=["end-to-end"],
        ),
    )
