"""
mrt — モバイルアプリ E2E チェックツール

Appium サーバー経由で実機・エミュレータ上のアプリを操作し、
環境依存の揺らぎ（広告・地域設定・通信状況）を考慮したチェックを実行する。
"""

__version__ = "0.1.0"
