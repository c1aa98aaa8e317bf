"""REST API layer for kubesim.

Exposes:
    create_app -- FastAPI application factory.
    build_app  -- Alias for create_app (used by the kubesim.app bootstrap).
"""

from kubesim.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]
