"""HTTP layer – FastAPI app for triggers, slash commands and dialogs."""

from api.server import create_app

__all__ = ["create_app"]
