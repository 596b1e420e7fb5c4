"""FastAPI application for the Contracts Service."""

from dotenv import load_dotenv
from fastapi import FastAPI

load_dotenv()

from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.contracts_service.plan_router import router as plans_router
from services.contracts_service.router import router as contracts_router


def create_app() -> FastAPI:
    """Create and configure the Contracts Service FastAPI app."""
    app = FastAPI(
        title="Gym Contracts Service",
        version="0.1.0",
        description=(
            "Membership plans and the contract lifecycle: creation, freezes,"
            " cancellation and history."
        ),
    )

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "contracts"}

    app.include_router(contracts_router)
    app.include_router(plans_router)

    return app


app = create_app()
