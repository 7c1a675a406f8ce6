"""HTTP admission webhook for Windows vCPU overcommit."""

from .app import app, create_app

__all__ = ["app", "create_app"]
