"""
餐品与配方相关数据模型
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .base import BaseEntity, Decimal4, DecimalValue, TimestampMixin


class RecipeLineInput(BaseModel):
    """配方行输入：一份餐品所需某种食材的数量"""
    ingredient_id: int = Field(..., description="食材ID")
    quantity: Decimal4 = Field(..., gt=0, description="每份用量")


def _check_unique_ingredients(lines: Optional[List[RecipeLineInput]]):
    if not lines:
        return lines
    ids = [line.ingredient_id for line in lines]
    if len(ids) != len(set(ids)):
        raise ValueError("同一餐品的配方中每种食材只能出现一次")
    return lines


class MealCreate(BaseModel):
    """餐品创建模型"""
    name: str = Field(..., min_length=1, max_length=200, description="餐品名称")
    description: Optional[str] = Field(None, max_length=1000, description="餐品描述")
    ingredients: List[RecipeLineInput] = Field(default_factory=list, description="配方行")

    @field_validator("ingredients")
    @classmethod
    def validate_ingredients(cls, v):
        """验证配方中食材ID的唯一性"""
        return _check_unique_ingredients(v)


class MealUpdate(BaseModel):
    """餐品更新模型；给出 ingredients 时整体替换配方"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    ingredients: Optional[List[RecipeLineInput]] = None

    @field_validator("ingredients")
    @classmethod
    def validate_ingredients(cls, v):
        return _check_unique_ingredients(v)


class RecipeLine(BaseModel):
    """读取时与食材表关联得到的配方行"""
    ingredient_id: int
    quantity: DecimalValue
    ingredient_name: str
    unit_name: Optional[str] = None
    cost_per_unit: DecimalValue


class Meal(BaseEntity, TimestampMixin):
    """餐品完整模型"""
    id: int = Field(..., description="餐品ID")
    name: str
    description: Optional[str] = None
    ingredients: List[RecipeLine] = Field(default_factory=list)
