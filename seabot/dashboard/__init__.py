"""SeaBot admin dashboard (JSON API)."""

from .app import create_app

__all__ = ["create_app"]
