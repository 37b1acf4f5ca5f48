"""
Entry point for ``python -m shiftplanner``.
"""

from .cli.app import app

if __name__ == "__main__":
    app()
