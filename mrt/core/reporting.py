"""
Reporter — 実行レポートの生成

ScenarioResult のリストを受け取り、JSON / HTML / JUnit XML 形式のレポートを生成する。

主な機能:
  - generate_json(): JSON レポート（report.json）の生成
  - generate_html(): Jinja2 テンプレートを使用した HTML レポート（report.html）の生成
  - render_html(): report.json の内容からの HTML 再生成
  - generate_junit_xml(): JUnit XML レポート（junit.xml）の生成（CI 統合用）

JUnit XML での分類の表現:
  - FAIL → <failure>
  - ENVIRONMENT_SKIP → <skipped>
  - DEGRADED_PASS → 成功扱い。<system-out> に理由、classification プロパティを付与
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from .orchestrator import Classification, ScenarioResult

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class Reporter:
    """実行レポートの生成クラス。

    Attributes:
        title: レポートの表題（プロファイル名等）
    """

    def __init__(self, title: str = "mrt") -> None:
        self.title = title

    # -------------------------------------------------------------------
    # JSON レポート
    # -------------------------------------------------------------------

    def generate_json(self, results: Sequence[ScenarioResult], output_dir: Path) -> Path:
        """JSON レポートを生成する。

        各チェックの結果と分類ごとのサマリーを report.json として出力する。

        Args:
            results: チェック実行結果のリスト
            output_dir: 出力先ディレクトリ

        Returns:
            生成された report.json のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        report_data = self._build_report_dict(results, output_dir)

        output_path = output_dir / "report.json"
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(report_data, f, ensure_ascii=False, indent=2)

        logger.info("JSON レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # HTML レポート
    # -------------------------------------------------------------------

    def generate_html(self, results: Sequence[ScenarioResult], output_dir: Path) -> Path:
        """HTML レポートを生成する。

        Args:
            results: チェック実行結果のリスト
            output_dir: 出力先ディレクトリ

        Returns:
            生成された report.html のパス
        """
        return self.render_html(self._build_report_dict(results, output_dir), output_dir)

    def render_html(self, report_data: dict[str, Any], output_dir: Path) -> Path:
        """レポート用辞書から report.html を生成する。

        report コマンドで既存の report.json から再生成する際にも使用する。

        Args:
            report_data: generate_json() と同じ構造の辞書
            output_dir: 出力先ディレクトリ

        Returns:
            生成された report.html のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=True,
        )
        template = env.get_template("report.html.j2")
        html_content = template.render(report=report_data)

        output_path = output_dir / "report.html"
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(html_content)

        logger.info("HTML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # JUnit XML レポート
    # -------------------------------------------------------------------

    def generate_junit_xml(self, results: Sequence[ScenarioResult], output_dir: Path) -> Path:
        """JUnit XML レポートを生成する。

        Args:
            results: チェック実行結果のリスト
            output_dir: 出力先ディレクトリ

        Returns:
            生成された junit.xml のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        summary = self._compute_summary(results)
        total_ms = sum(r.duration_ms for r in results)

        testsuites = ET.Element("testsuites")
        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", self.title)
        testsuite.set("tests", str(summary["total"]))
        testsuite.set("failures", str(summary[Classification.FAIL.value]))
        testsuite.set("skipped", str(summary[Classification.ENVIRONMENT_SKIP.value]))
        testsuite.set("time", f"{total_ms / 1000:.3f}")

        for result in results:
            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", result.name)
            testcase.set("classname", self.title)
            testcase.set("time", f"{result.duration_ms / 1000:.3f}")

            properties = ET.SubElement(testcase, "properties")
            prop = ET.SubElement(properties, "property")
            prop.set("name", "classification")
            prop.set("value", result.classification.value)

            if result.classification is Classification.FAIL:
                failure = ET.SubElement(testcase, "failure")
                failure.set("message", result.reason or "")
                failure.text = result.reason or ""
            elif result.classification is Classification.ENVIRONMENT_SKIP:
                skipped = ET.SubElement(testcase, "skipped")
                skipped.set("message", result.reason or "")
            elif result.classification is Classification.DEGRADED_PASS:
                system_out = ET.SubElement(testcase, "system-out")
                system_out.text = f"degraded: {result.reason}"

        tree = ET.ElementTree(testsuites)
        output_path = output_dir / "junit.xml"
        ET.indent(tree, space="  ")
        tree.write(
            str(output_path),
            encoding="unicode",
            xml_declaration=True,
        )

        logger.info("JUnit XML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _build_report_dict(
        self, results: Sequence[ScenarioResult], output_dir: Path,
    ) -> dict[str, Any]:
        """ScenarioResult のリストをレポート用辞書に変換する。"""
        checks_data = []
        for result in results:
            checks_data.append({
                "name": result.name,
                "classification": result.classification.value,
                "reason": result.reason,
                "degraded_reasons": list(result.degraded_reasons),
                "tags": list(result.tags),
                "duration_ms": result.duration_ms,
                "started_at": result.started_at.isoformat() if result.started_at else None,
                "finished_at": result.finished_at.isoformat() if result.finished_at else None,
                "screenshot_path": _to_relative_path(result.screenshot_path, output_dir),
                "page_source_path": _to_relative_path(result.page_source_path, output_dir),
                "teardown_warnings": list(result.teardown_warnings),
                "actions": [
                    {
                        "primitive": action.primitive,
                        "target": action.target,
                        "outcome": action.outcome.value,
                        "duration_ms": action.duration_ms,
                        "policy": action.policy,
                        "error": action.error,
                    }
                    for action in result.actions
                ],
            })

        return {
            "title": self.title,
            "checks": checks_data,
            "summary": self._compute_summary(results),
        }

    def _compute_summary(self, results: Sequence[ScenarioResult]) -> dict[str, int]:
        """分類ごとの件数を計算する。

        Returns:
            total と各分類値（pass, degraded_pass, environment_skip, fail）の辞書
        """
        summary = {"total": len(results)}
        for classification in Classification:
            summary[classification.value] = sum(
                1 for r in results if r.classification is classification
            )
        return summary


def _to_relative_path(path: Optional[Path], base_dir: Path) -> Optional[str]:
    """成果物のパスを base_dir からの相対 POSIX パスに変換する。"""
    if path is None:
        return None
    try:
        return path.relative_to(base_dir).as_posix()
    except ValueError:
        return path.as_posix()
