"""
API Router

This module configures the FastAPI router with all endpoints.
"""

from fastapi import APIRouter

from crestcat.api.v1.routes import (
    admin,
    assets,
    deposit_methods,
    investments,
    notifications,
    transactions,
    withdrawals,
)

api_router = APIRouter()

# Include routers
api_router.include_router(investments.router, prefix="/investments", tags=["investments"])
api_router.include_router(withdrawals.router, prefix="/withdrawals", tags=["withdrawals"])
api_router.include_router(assets.router, prefix="/assets", tags=["assets"])
api_router.include_router(deposit_methods.router, prefix="/deposit-methods", tags=["deposit-methods"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
