"""FastAPI application for the Store Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.store_service.routers import cart_router, orders_router


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    app = FastAPI(
        title="Highstreet Store Service",
        version="0.1.0",
        description="Marketplace cart, multi-retailer checkout and order fulfilment.",
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Domain errors -> consistent JSON bodies
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    app.include_router(cart_router, prefix="/store")
    app.include_router(orders_router, prefix="/store")

    return app


app = create_app()
