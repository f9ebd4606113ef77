"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

mrt コマンドとして以下のサブコマンドを提供する:
  - init: プロジェクト雛形生成
  - run: プロファイルを指定してチェックを実行
  - validate: プロファイルのスキーマ検証
  - list-checks: 登録済みチェック一覧
  - report: HTML レポート再生成
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s - %(message)s"

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "mrt — モバイルアプリ E2E チェックツール\n\n"
        "基本の流れ:\n"
        "  1. mrt init                           雛形を生成\n"
        "  2. mrt validate profiles/xxx.yaml     プロファイルを検証\n"
        "  3. mrt run profiles/xxx.yaml CHECK    チェックを実行\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


_PROFILE_TEMPLATE = """\
# mrt プロファイル
# 対象アプリと端末の接続設定を記述します
name: example
session:
  platformName: Android
  platformVersion: "11.0"
  deviceName: emulator-5554
  appPackage: com.example.app
  appActivity: com.example.app.MainActivity
  serverUrl: http://localhost:4723
  noReset: true
  autoGrantPermissions: false
waits:
  defaultMs: 10000
  extendedMs: 60000
  pollMs: 200
artifactsDir: artifacts
"""


# ---------------------------------------------------------------------------
# init コマンド
# ---------------------------------------------------------------------------

@app.command()
def init(
    project_dir: Path = typer.Argument(
        Path("."), help="プロジェクトディレクトリ（デフォルト: カレント）",
    ),
) -> None:
    """プロジェクト雛形（profiles/, artifacts/ とプロファイルテンプレート）を生成する。"""
    try:
        for d in ("profiles", "artifacts"):
            (project_dir / d).mkdir(parents=True, exist_ok=True)

        template_path = project_dir / "profiles" / "example.yaml"
        if not template_path.exists():
            template_path.write_text(_PROFILE_TEMPLATE, encoding="utf-8")

        typer.echo(f"プロジェクトを初期化しました: {project_dir.resolve()}")
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# run コマンド
# ---------------------------------------------------------------------------

@app.command()
def run(
    profile_file: Path = typer.Argument(..., help="使用するプロファイル（YAML）"),
    checks: list[str] = typer.Argument(..., help="実行するチェック名（複数指定可）"),
    server_url: Optional[str] = typer.Option(
        None, "--server-url", help="Appium サーバー URL（プロファイル・環境変数より優先）",
    ),
    udid: Optional[str] = typer.Option(
        None, "--udid", help="端末の UDID（プロファイル・環境変数より優先）",
    ),
    artifacts_dir: Optional[Path] = typer.Option(
        None, "--artifacts-dir", help="成果物ディレクトリ（プロファイル・環境変数より優先）",
    ),
    report: bool = typer.Option(True, "--report/--no-report", help="レポートを生成する"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="DEBUG ログを表示する"),
) -> None:
    """プロファイルの端末に接続し、指定したチェックを順番に実行する。

    いずれかのチェックが fail の場合は終了コード 1 で終了します。
    """
    from .checks import create_default_registry
    from .config import ProfileLoader
    from .core.artifacts import ArtifactsManager
    from .core.orchestrator import Orchestrator
    from .core.reporting import Reporter
    from .core.session import SessionManager

    _configure_logging(verbose)

    try:
        loader = ProfileLoader()
        profile = loader.load(
            profile_file,
            overrides={
                "session.serverUrl": server_url,
                "session.udid": udid,
                "artifactsDir": str(artifacts_dir) if artifacts_dir is not None else None,
            },
        )

        registry = create_default_registry()
        selected = [registry.get(name) for name in checks]

        artifacts = ArtifactsManager(base_dir=Path(profile.artifactsDir))
        run_dir = artifacts.create_run_dir()

        results = []
        file_handler = _attach_run_log(run_dir / "logs" / "run.log", verbose)
        try:
            artifacts.save_env_info(profile, [c.name for c in selected])
            orchestrator = Orchestrator(SessionManager(), artifacts)
            for check in selected:
                results.append(orchestrator.run(check, profile))
        finally:
            logging.getLogger("mrt").removeHandler(file_handler)
            file_handler.close()
            # 途中で中断しても完了済みのチェックはレポートに残す
            if report and results:
                reporter = Reporter(title=profile.name)
                reporter.generate_json(results, run_dir)
                reporter.generate_junit_xml(results, run_dir)
                reporter.generate_html(results, run_dir)

        typer.echo(f"プロファイル: {profile.name}")
        for result in results:
            line = f"  {result.classification.value:17s} {result.name}"
            if result.reason:
                line += f" — {result.reason}"
            typer.echo(line)

        counts: dict[str, int] = {}
        for result in results:
            counts[result.classification.value] = counts.get(result.classification.value, 0) + 1
        summary = ", ".join(f"{k}={v}" for k, v in sorted(counts.items()))
        typer.echo(f"結果: {len(results)} 件 ({summary})")
        typer.echo(f"成果物: {run_dir}")

        if any(result.failed for result in results):
            raise typer.Exit(code=1)
    except typer.Exit:
        raise
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# validate コマンド
# ---------------------------------------------------------------------------

@app.command()
def validate(
    profile_file: Path = typer.Argument(..., help="検証するプロファイル（YAML）"),
) -> None:
    """プロファイルのスキーマ検証を行う。"""
    from .config import ProfileLoader

    loader = ProfileLoader()
    errors = loader.validate(profile_file)

    if not errors:
        typer.echo(f"✓ {profile_file}: スキーマ検証 OK")
    else:
        for err in errors:
            line_info = f" (行 {err.line})" if err.line else ""
            typer.echo(f"✗ {err.location}{line_info}: {err.message}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# list-checks コマンド
# ---------------------------------------------------------------------------

@app.command("list-checks")
def list_checks() -> None:
    """登録済み全チェックの一覧を表示する。"""
    from .checks import create_default_registry

    registry = create_default_registry()
    all_checks = registry.list_all()

    # 対象アプリごとにグループ化して表示
    apps: dict[str, list] = {}
    for info in all_checks:
        apps.setdefault(info.app, []).append(info)

    for app_name, infos in sorted(apps.items()):
        typer.echo(f"\n[{app_name}]")
        for info in infos:
            marker = " (known-issue)" if info.known_issue else ""
            typer.echo(f"  {info.name:30s} {info.description}{marker}")

    typer.echo(f"\n合計: {len(all_checks)} チェック")


# ---------------------------------------------------------------------------
# report コマンド
# ---------------------------------------------------------------------------

@app.command()
def report(
    artifacts_dir: Path = typer.Argument(..., help="実行ディレクトリ（report.json を含む）"),
) -> None:
    """既存の report.json から HTML レポートを再生成する。"""
    import json

    from .core.reporting import Reporter

    try:
        report_json_path = artifacts_dir / "report.json"
        if not report_json_path.exists():
            typer.echo(f"エラー: {report_json_path} が見つかりません", err=True)
            raise typer.Exit(code=1)

        with open(report_json_path, "r", encoding="utf-8") as f:
            report_data = json.load(f)

        reporter = Reporter(title=report_data.get("title", "mrt"))
        html_path = reporter.render_html(report_data, artifacts_dir)
        typer.echo(f"HTML レポートを生成しました: {html_path}")
    except typer.Exit:
        raise
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# ログ設定
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    """mrt ロガーにコンソール出力を設定する。"""
    root = logging.getLogger("mrt")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(root.handlers):
        if getattr(handler, "_mrt_console", False):
            root.removeHandler(handler)

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(_LOG_FORMAT))
    console._mrt_console = True  # type: ignore[attr-defined]
    root.addHandler(console)


def _attach_run_log(path: Path, verbose: bool) -> logging.Handler:
    """実行ディレクトリの logs/run.log にログを書き出すハンドラを追加する。"""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logging.getLogger("mrt").addHandler(handler)
    return handler
