from fastapi import APIRouter

from snackhub.app.api.v1.endpoints.health import router as health_router
from snackhub.app.api.v1.endpoints.order_requests import router as order_requests_router
from snackhub.app.api.v1.endpoints.orders import router as orders_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(order_requests_router, tags=["order_requests"])
router.include_router(orders_router, tags=["orders"])
