"""FastAPI application package."""

from expenseai.api.main import create_app

__all__ = ["create_app"]
