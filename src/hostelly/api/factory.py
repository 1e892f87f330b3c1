"""FastAPI application factory."""

from fastapi import FastAPI, Request, Response

from hostelly.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

from .routes import maintenance, rooms, students


def create_app() -> FastAPI:
    """Create the console API with all routers mounted."""
    app = FastAPI(
        title="Hostelly",
        docs_url=None,
        redoc_url=None,
    )

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    app.include_router(rooms.router)
    app.include_router(students.router)
    app.include_router(maintenance.router)

    return app
