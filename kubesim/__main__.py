"""Entry point for `python -m kubesim`.

Usage:
    python -m kubesim serve --port 8080
    python -m kubesim run scenario.json
"""

from __future__ import annotations

from kubesim.cli import cli

cli()
