"""python -m autoreuse で CLI を起動する。"""

from .cli import app

app()
