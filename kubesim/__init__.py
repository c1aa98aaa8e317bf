"""kubesim: in-memory Kubernetes control-plane reconciliation simulator."""

__version__ = "0.1.0"
