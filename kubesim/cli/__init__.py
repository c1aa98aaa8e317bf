"""kubesim command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``kubesim`` script).
"""

from kubesim.cli.main import cli

__all__ = ["cli"]
