"""python -m mrt エントリポイント。"""

from .cli import app

app()
