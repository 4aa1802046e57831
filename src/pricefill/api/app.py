"""FastAPI application factory for the HTTP price endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from pricefill.api import routes


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI price service.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  main.py injects one that builds and closes the resolver
                  components; tests set app.state.orchestrator directly.

    Returns:
        Configured FastAPI application with the price routes registered.
    """
    app = FastAPI(
        title="Historical Price Resolver",
        lifespan=lifespan,
    )
    app.state.orchestrator = None

    app.include_router(routes.router, prefix="/api")

    return app
