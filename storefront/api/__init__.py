"""Storefront API routes."""

from storefront.api.router import api_router

__all__ = ["api_router"]
