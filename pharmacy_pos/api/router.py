# pharmacy_pos/api/router.py
from fastapi import APIRouter

from pharmacy_pos.api import (
    routes_audit_logs,
    routes_medicines,
    routes_sales,
    routes_schedule_h1,
    routes_stock_alerts,
)

api_router = APIRouter()

api_router.include_router(routes_medicines.router)
api_router.include_router(routes_sales.router)
api_router.include_router(routes_stock_alerts.router)
api_router.include_router(routes_schedule_h1.router)
api_router.include_router(routes_audit_logs.router)
