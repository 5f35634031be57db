"""
Business logic services.
Contains service layer implementations for core business operations.
"""

from .alert_service import AlertService
from .budget_service import BudgetService
from .ingredient_service import IngredientService
from .log_service import LogService
from .meal_service import MealService
from .preparation_service import PreparationService
from .unit_service import UnitService

__all__ = [
    "AlertService",
    "BudgetService",
    "IngredientService",
    "LogService",
    "MealService",
    "PreparationService",
    "UnitService",
]
