"""FastAPI application."""

from hostelly.api.factory import create_app

app = create_app()
