"""FastAPI application for the Sessions Service."""

from dotenv import load_dotenv
from fastapi import FastAPI

load_dotenv()

from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.sessions_service.router import router as sessions_router


def create_app() -> FastAPI:
    """Create and configure the Sessions Service FastAPI app."""
    app = FastAPI(
        title="Gym Sessions Service",
        version="0.1.0",
        description="Trainer and client session scheduling with conflict checks.",
    )

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "sessions"}

    app.include_router(sessions_router)

    return app


app = create_app()
