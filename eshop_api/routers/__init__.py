"""
HTTP routers: the client API under /app/v1/api and the payment gateway surface
"""
from fastapi import APIRouter

from .addresses import router as addresses_router
from .auth import router as auth_router
from .cart import router as cart_router
from .catalog import router as catalog_router
from .orders import router as orders_router
from .payments import api_router as phonepe_api_router
from .payments import router as payment_router
from .ratings import router as ratings_router
from .transactions import router as transactions_router
from .zipcodes import router as zipcodes_router

api_router = APIRouter(prefix="/app/v1/api")
for _router in (
    auth_router, catalog_router, zipcodes_router, addresses_router, cart_router, orders_router,
    transactions_router, ratings_router, phonepe_api_router,
):
    api_router.include_router(_router)

__all__ = ["api_router", "payment_router"]
