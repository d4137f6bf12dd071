"""Public shared HTTP helpers."""

from .server import create_app, run_app

__all__ = ["create_app", "run_app"]
