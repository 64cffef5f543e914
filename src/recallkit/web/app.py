"""FastAPI application for the recallkit web API."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from recallkit.core.errors import (
    CardAlreadyExists,
    ConcurrentModification,
    InvalidState,
    InvalidTransition,
    NotFound,
    RecallKitError,
)
from recallkit.web.routes import cards_router, review_router

_STATUS_CODES: dict[type[RecallKitError], int] = {
    NotFound: 404,
    InvalidTransition: 409,
    ConcurrentModification: 409,
    CardAlreadyExists: 409,
    InvalidState: 422,
}


async def _recallkit_error_handler(request: Request, exc: RecallKitError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _STATUS_CODES.items() if isinstance(exc, error_type)),
        500,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="recallkit",
        description="Spaced repetition review scheduling",
        version="0.1.0",
    )

    app.add_exception_handler(RecallKitError, _recallkit_error_handler)

    # Routes
    app.include_router(cards_router, prefix="/cards", tags=["cards"])
    app.include_router(review_router, prefix="/review", tags=["review"])

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


# Create the app instance for uvicorn
app = create_app()
