"""HTTP surface for permission lookups."""

from .app import create_app

__all__ = ["create_app"]
