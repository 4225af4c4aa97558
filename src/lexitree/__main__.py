"""Fallback entrypoint for `python -m lexitree`.

Routes to the lexitree_cli Typer application.
"""

from lexitree_cli.main import app

if __name__ == "__main__":
    app()
