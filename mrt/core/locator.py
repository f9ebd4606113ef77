"""
ロケータリゾルバ — 要素記述を自動化サーバーのクエリに変換

テキスト・リソース ID・XPath 等による要素記述を不変の Locator に正規化し、
Appium の (By, value) クエリへ変換する。I/O を伴わない純粋関数のみで構成する。

主な機能:
  - resolve(): 記述辞書 → Locator（不正な記述は InvalidLocatorError）
  - to_query(): Locator → (AppiumBy, value)
  - describe(): ログ・エラーメッセージ用の説明文字列
  - by_text / by_id / by_xpath / containing / by_accessibility_id: 生成ヘルパー

記述の形式（キーはいずれか1つ）:
  {"text": "Играть"} / {"text": "OK", "role": "button"}
  {"id": "com.example:id/title"}
  {"xpath": "//*[@text='x']"}
  {"contains": "Ошибка"}
  {"accessibilityId": "Search"}
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from appium.webdriver.common.appiumby import AppiumBy
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import InvalidLocatorError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Locator 本体
# ---------------------------------------------------------------------------

class LocatorStrategy(str, enum.Enum):
    """ロケータの指定方式。"""

    TEXT = "text"
    ID = "id"
    XPATH = "xpath"
    CONTAINS = "contains"
    ACCESSIBILITY_ID = "accessibilityId"


@dataclass(frozen=True)
class Locator:
    """解決済みの要素ロケータ。呼び出し箇所ごとに生成する不変値。

    Attributes:
        strategy: 指定方式
        value: 指定値
        role: text 指定時の要素ロール（button 等）。その他の方式では None
    """

    strategy: LocatorStrategy
    value: str
    role: Optional[str] = None

    def __str__(self) -> str:
        return describe(self)


# text 指定時のロール → Android ウィジェットクラス
ROLE_CLASSES: dict[str, str] = {
    "button": "android.widget.Button",
    "text": "android.widget.TextView",
    "image": "android.widget.ImageView",
    "input": "android.widget.EditText",
    "checkbox": "android.widget.CheckBox",
    "switch": "android.widget.Switch",
    "list": "androidx.recyclerview.widget.RecyclerView",
}


# ---------------------------------------------------------------------------
# 記述モデル
# ---------------------------------------------------------------------------

class _Description(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TextDescription(_Description):
    """表示テキストの完全一致による記述。"""

    text: str = Field(..., min_length=1, description="表示テキスト")
    role: Optional[str] = Field(default=None, description="要素ロール（任意）")

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ROLE_CLASSES:
            allowed = ", ".join(sorted(ROLE_CLASSES))
            raise ValueError(f"未知のロールです: {v}（使用可能: {allowed}）")
        return v


class IdDescription(_Description):
    """リソース ID による記述。最も安定した指定方式。"""

    id: str = Field(..., min_length=1, description="リソース ID")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if any(ch.isspace() for ch in v):
            raise ValueError(f"リソース ID に空白文字は使用できません: {v!r}")
        return v


class XPathDescription(_Description):
    """構造式（XPath）による記述。テキストも ID も持たない要素向け。"""

    xpath: str = Field(..., min_length=1, description="XPath 式")

    @field_validator("xpath")
    @classmethod
    def validate_xpath(cls, v: str) -> str:
        if not v.lstrip().startswith(("/", "(")):
            raise ValueError(f"XPath は '/' または '(' で始まる必要があります: {v!r}")
        return v.strip()


class ContainsDescription(_Description):
    """部分一致テキストによる記述（任意要素がテキストを含む）。"""

    contains: str = Field(..., min_length=1, description="含まれるテキスト")


class AccessibilityIdDescription(_Description):
    """アクセシビリティ ID（content-desc）による記述。"""

    accessibilityId: str = Field(..., min_length=1, description="アクセシビリティ ID")


_DESCRIPTION_MODELS: dict[str, type[_Description]] = {
    "text": TextDescription,
    "id": IdDescription,
    "xpath": XPathDescription,
    "contains": ContainsDescription,
    "accessibilityId": AccessibilityIdDescription,
}


LocatorDescription = Union[Locator, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# パブリック API
# ---------------------------------------------------------------------------

def resolve(description: LocatorDescription) -> Locator:
    """要素記述を Locator に解決する。

    Locator が渡された場合はそのまま返す。辞書の場合は主キー
    （text / id / xpath / contains / accessibilityId）がちょうど1つ
    含まれている必要がある。

    Args:
        description: 要素記述辞書または解決済み Locator

    Returns:
        解決された Locator

    Raises:
        InvalidLocatorError: 記述が不正な場合
    """
    if isinstance(description, Locator):
        return description

    if not isinstance(description, Mapping):
        raise InvalidLocatorError(
            f"ロケータ記述は辞書で指定してください: {type(description).__name__}"
        )

    keys = [k for k in description if k in _DESCRIPTION_MODELS]
    if len(keys) != 1:
        allowed = ", ".join(_DESCRIPTION_MODELS)
        raise InvalidLocatorError(
            f"ロケータ記述には {allowed} のいずれか1つを指定してください: {dict(description)}"
        )

    kind = keys[0]
    try:
        model = _DESCRIPTION_MODELS[kind](**description)
    except ValidationError as exc:
        messages = "; ".join(err.get("msg", "") for err in exc.errors())
        raise InvalidLocatorError(
            f"ロケータ記述が不正です: {dict(description)} — {messages}"
        ) from exc

    if isinstance(model, TextDescription):
        return Locator(LocatorStrategy.TEXT, model.text, role=model.role)
    if isinstance(model, IdDescription):
        return Locator(LocatorStrategy.ID, model.id)
    if isinstance(model, XPathDescription):
        return Locator(LocatorStrategy.XPATH, model.xpath)
    if isinstance(model, ContainsDescription):
        return Locator(LocatorStrategy.CONTAINS, model.contains)
    return Locator(LocatorStrategy.ACCESSIBILITY_ID, model.accessibilityId)


def by_text(text: str, role: Optional[str] = None) -> Locator:
    """表示テキストの完全一致 Locator を生成する。"""
    description: dict[str, Any] = {"text": text}
    if role is not None:
        description["role"] = role
    return resolve(description)


def by_id(resource_id: str) -> Locator:
    """リソース ID の Locator を生成する。"""
    return resolve({"id": resource_id})


def by_xpath(expression: str) -> Locator:
    """XPath の Locator を生成する。"""
    return resolve({"xpath": expression})


def containing(text: str) -> Locator:
    """テキストを含む任意要素の Locator を生成する。"""
    return resolve({"contains": text})


def by_accessibility_id(value: str) -> Locator:
    """アクセシビリティ ID の Locator を生成する。"""
    return resolve({"accessibilityId": value})


ANY_ELEMENT = Locator(LocatorStrategy.XPATH, "//*")
"""何らかの要素が表示されていることの汎用プローブ用 Locator。"""


def to_query(locator: Locator) -> tuple[str, str]:
    """Locator を Appium の (By, value) クエリに変換する。

    Args:
        locator: 変換対象の Locator

    Returns:
        find_elements() に渡す (By, value) のタプル
    """
    if locator.strategy is LocatorStrategy.TEXT:
        selector = f"new UiSelector().text({_uiselector_literal(locator.value)})"
        if locator.role is not None:
            selector = (
                f"new UiSelector().className({_uiselector_literal(ROLE_CLASSES[locator.role])})"
                f".text({_uiselector_literal(locator.value)})"
            )
        return AppiumBy.ANDROID_UIAUTOMATOR, selector

    if locator.strategy is LocatorStrategy.ID:
        return AppiumBy.ID, locator.value

    if locator.strategy is LocatorStrategy.XPATH:
        return AppiumBy.XPATH, locator.value

    if locator.strategy is LocatorStrategy.CONTAINS:
        return AppiumBy.XPATH, f"//*[contains(@text, {_xpath_literal(locator.value)})]"

    return AppiumBy.ACCESSIBILITY_ID, locator.value


def describe(locator: Locator) -> str:
    """Locator の人間可読な説明文字列を生成する。

    Args:
        locator: 説明対象の Locator

    Returns:
        説明文字列（例: text='Играть', role='button'）
    """
    desc = f"{locator.strategy.value}='{locator.value}'"
    if locator.role is not None:
        desc += f", role='{locator.role}'"
    return desc


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def _uiselector_literal(value: str) -> str:
    """UiSelector の Java 文字列リテラルを生成する。"""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _xpath_literal(value: str) -> str:
    """XPath 1.0 の文字列リテラルを生成する。

    XPath 1.0 にはエスケープ構文がないため、両方の引用符を含む場合は
    concat() で連結する。
    """
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    joined = ", \"'\", ".join(f"'{part}'" for part in parts)
    return f"concat({joined})"
