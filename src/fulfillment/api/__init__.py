"""Fulfillment API package."""

from fulfillment.api.routes import admin_router, preview_router, webhook_router

__all__ = ["admin_router", "preview_router", "webhook_router"]
