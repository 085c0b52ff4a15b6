"""
API v1 router that aggregates all endpoint routers.
All routes require authentication except health, public invoice, webhook and
admin endpoints. Admin endpoints require the admin key instead.
"""

from fastapi import APIRouter, Depends
from app.api.v1.middleware import require_admin, require_authentication

from app.api.v1.endpoints import (
    health,
    public,
    webhooks,
    admin,
    users,
    clients,
    invoices,
    dashboard,
    payout_destination,
    payouts,
    bank_accounts,
    subscriptions,
)

api_router = APIRouter()

# Public routes (no authentication required)
api_router.include_router(health.router, tags=["health"])
api_router.include_router(public.router, prefix="/public", tags=["public"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])

# Operator routes, called by the scheduler
api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)

# Protected routes (authentication required for all endpoints)
# Authentication is enforced via dependency injection at the router level
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    clients.router,
    prefix="/clients",
    tags=["clients"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["invoices"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    payout_destination.router,
    prefix="/payout-destination",
    tags=["payouts"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    payouts.router,
    prefix="/payouts",
    tags=["payouts"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    bank_accounts.router,
    prefix="/bank-accounts",
    tags=["bank-accounts"],
    dependencies=[Depends(require_authentication)],
)
api_router.include_router(
    subscriptions.router,
    prefix="/subscriptions",
    tags=["subscriptions"],
    dependencies=[Depends(require_authentication)],
)
