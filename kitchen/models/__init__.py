"""
Domain models for the kitchen inventory.
"""

from .unit import Unit
from .ingredient import Ingredient, IngredientCreate, IngredientUpdate
from .meal import Meal, MealCreate, MealUpdate, RecipeLine, RecipeLineInput
from .preparation import Preparation, PreparationResult, DeductedIngredient
from .budget import BudgetPeriod, BudgetPeriodCreate, BudgetUsage
from .alert import StockAlert, AlertReport

__all__ = [
    "Unit",
    "Ingredient", "IngredientCreate", "IngredientUpdate",
    "Meal", "MealCreate", "MealUpdate", "RecipeLine", "RecipeLineInput",
    "Preparation", "PreparationResult", "DeductedIngredient",
    "BudgetPeriod", "BudgetPeriodCreate", "BudgetUsage",
    "StockAlert", "AlertReport",
]
