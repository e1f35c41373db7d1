"""HTTP surface of the course video pipeline."""

from .app import create_app

__all__ = ["create_app"]
