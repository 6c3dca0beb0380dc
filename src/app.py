"""StoryPrint fulfillment FastAPI application.

Receives payment notifications, runs the fulfillment pipeline inline and
serves the operator console endpoints. Every request runs inside the
fulfillment domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# PROTEAN_ENV selects the domain.toml overlay ("test", "production", ...).
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from fulfillment.domain import fulfillment
from fulfillment.services import FulfillmentServices, build_services
from fulfillment.utils.logging import configure_logging

fulfillment.init()


def create_app(services: FulfillmentServices | None = None) -> FastAPI:
    from fulfillment.api import admin_router, preview_router, webhook_router

    app = FastAPI(
        title="StoryPrint Fulfillment API",
        description="Payment webhooks, fulfillment pipeline and operator console",
    )
    app.state.fulfillment = services or build_services()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the fulfillment domain context for each request."""
        with fulfillment.domain_context():
            return await call_next(request)

    app.include_router(webhook_router)
    app.include_router(preview_router)
    app.include_router(admin_router)
    register_exception_handlers(app)

    @app.get("/health")
    async def health():
        settings = app.state.fulfillment.settings
        return JSONResponse(
            content={
                "status": "ok",
                "domain": fulfillment.name,
                "adapters": settings.adapters,
                "require_print_approval": settings.require_print_approval,
                "missing_configuration": app.state.fulfillment.collaborators.health_report(),
            }
        )

    return app


configure_logging()
app = create_app()
