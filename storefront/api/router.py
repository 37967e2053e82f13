"""Storefront API Router - aggregates all API routes."""

from fastapi import APIRouter

from storefront.api import auth, checkout, csrf

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

api_router.include_router(csrf.router)
api_router.include_router(checkout.router)
api_router.include_router(auth.router)
