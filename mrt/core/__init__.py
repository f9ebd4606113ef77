# コアモジュール
# ロケータ解決、待機ポリシー、UI 操作、セッション管理、チェック実行、成果物管理、レポート生成を提供

from .artifacts import ArtifactsManager, mask_secrets
from .deeplink import DeepLinkTarget, build_deep_link, verify_deep_link
from .interaction import ActionRecord, Interactor, OutcomeKind
from .locator import Locator, LocatorStrategy, describe, resolve, to_query
from .orchestrator import CheckContext, Classification, Orchestrator, ScenarioResult, classify
from .reporting import Reporter
from .session import DeviceSession, SessionConfig, SessionManager, SessionState
from .waits import (
    DEFAULT_POLICY,
    EXTENDED_POLICY,
    WaitPolicy,
    WaitPolicySet,
    WaitPurpose,
    wait_until,
)

__all__ = [
    "DEFAULT_POLICY",
    "EXTENDED_POLICY",
    "ActionRecord",
    "ArtifactsManager",
    "CheckContext",
    "Classification",
    "DeepLinkTarget",
    "DeviceSession",
    "Interactor",
    "Locator",
    "LocatorStrategy",
    "Orchestrator",
    "OutcomeKind",
    "Reporter",
    "ScenarioResult",
    "SessionConfig",
    "SessionManager",
    "SessionState",
    "WaitPolicy",
    "WaitPolicySet",
    "WaitPurpose",
    "build_deep_link",
    "classify",
    "describe",
    "mask_secrets",
    "resolve",
    "to_query",
    "verify_deep_link",
    "wait_until",
]
