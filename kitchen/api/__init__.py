"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import alerts, budget, ingredients, logs, meals, preparations, units

api_router = APIRouter()

# 包含所有v1路由
api_router.include_router(units.router, prefix="/units", tags=["计量单位"])
api_router.include_router(ingredients.router, prefix="/ingredients", tags=["食材"])
api_router.include_router(meals.router, prefix="/meals", tags=["餐品"])
api_router.include_router(preparations.router, prefix="/preparations", tags=["制作记录"])
api_router.include_router(budget.router, prefix="/budget", tags=["预算"])
api_router.include_router(alerts.router, prefix="/alerts", tags=["告警"])
api_router.include_router(logs.router, prefix="/logs", tags=["日志"])
