"""
路由依赖
服务按请求构造，测试中通过 app.dependency_overrides 替换 get_db
"""

from fastapi import Depends

from ..core.database import DatabaseManager, db_manager
from ..services import (
    AlertService,
    BudgetService,
    IngredientService,
    LogService,
    MealService,
    PreparationService,
    UnitService,
)


def get_db() -> DatabaseManager:
    return db_manager


def get_unit_service(db: DatabaseManager = Depends(get_db)) -> UnitService:
    return UnitService(db)


def get_ingredient_service(db: DatabaseManager = Depends(get_db)) -> IngredientService:
    return IngredientService(db)


def get_meal_service(db: DatabaseManager = Depends(get_db)) -> MealService:
    return MealService(db)


def get_preparation_service(db: DatabaseManager = Depends(get_db)) -> PreparationService:
    return PreparationService(db)


def get_budget_service(db: DatabaseManager = Depends(get_db)) -> BudgetService:
    return BudgetService(db)


def get_alert_service(db: DatabaseManager = Depends(get_db)) -> AlertService:
    return AlertService(db)


def get_log_service(db: DatabaseManager = Depends(get_db)) -> LogService:
    return LogService(db)
