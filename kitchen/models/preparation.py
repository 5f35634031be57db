"""
制作记录相关数据模型
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import BaseEntity, DecimalValue


class Preparation(BaseEntity):
    """制作记录，创建后不可修改"""
    id: int = Field(..., description="记录ID")
    meal_id: int = Field(..., description="餐品ID")
    meal_name: Optional[str] = Field(None, description="餐品名称（列表查询时附带）")
    quantity_prepared: int = Field(..., ge=1, description="制作份数")
    total_cost: DecimalValue = Field(..., description="总成本，保留两位小数")
    prepared_at: datetime = Field(..., description="制作时间")


class DeductedIngredient(BaseModel):
    """一次制作中某食材的扣减量"""
    ingredient_id: int
    ingredient_name: str
    quantity_deducted: DecimalValue
    unit: Optional[str] = None


class PreparationResult(BaseModel):
    """制作结果"""
    preparation: Preparation
    total_cost: DecimalValue
    deducted: List[DeductedIngredient]
