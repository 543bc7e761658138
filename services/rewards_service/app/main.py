"""FastAPI application for the Rewards Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.rewards_service.routers import (
    admin_router,
    discounts_router,
    points_router,
)


def create_app() -> FastAPI:
    """Create and configure the Rewards Service FastAPI app."""
    app = FastAPI(
        title="Highstreet Rewards Service",
        version="0.1.0",
        description="Discount codes and the loyalty points ledger.",
    )

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "rewards"}

    app.include_router(points_router)
    app.include_router(discounts_router)
    app.include_router(admin_router)

    return app


app = create_app()
