"""
食材相关数据模型
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .base import BaseEntity, Decimal4, DecimalValue, TimestampMixin


class IngredientBase(BaseModel):
    """食材基础字段"""
    name: str = Field(..., min_length=1, max_length=200, description="食材名称")
    unit_id: int = Field(..., description="计量单位ID")
    cost_per_unit: Decimal4 = Field(Decimal("0"), ge=0, description="单位成本")
    min_stock: Decimal4 = Field(Decimal("0"), ge=0, description="最低库存（低于即告警）")
    max_stock: Optional[Decimal4] = Field(None, ge=0, description="最高库存（高于即告警）")


class IngredientCreate(IngredientBase):
    """食材创建模型"""
    current_stock: Decimal4 = Field(Decimal("0"), description="当前库存")

    @model_validator(mode="after")
    def check_thresholds(self):
        if self.max_stock is not None and self.max_stock < self.min_stock:
            raise ValueError("max_stock 不能小于 min_stock")
        return self


class IngredientUpdate(BaseModel):
    """食材部分更新模型，只写入显式给出的字段；max_stock 显式为 null 表示取消上限"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    unit_id: Optional[int] = None
    cost_per_unit: Optional[Decimal4] = Field(None, ge=0)
    min_stock: Optional[Decimal4] = Field(None, ge=0)
    max_stock: Optional[Decimal4] = Field(None, ge=0)
    current_stock: Optional[Decimal4] = None

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        for field in self.model_fields_set:
            if field != "max_stock" and getattr(self, field) is None:
                raise ValueError(f"{field} 不能为空")
        return self

    def changes(self) -> dict:
        """本次更新实际要写入的字段"""
        return self.model_dump(exclude_unset=True)


class Ingredient(BaseEntity, TimestampMixin):
    """食材完整模型（附带单位名称）"""
    id: int = Field(..., description="食材ID")
    name: str
    unit_id: int
    unit_name: Optional[str] = None
    cost_per_unit: DecimalValue
    current_stock: DecimalValue
    min_stock: DecimalValue
    max_stock: Optional[DecimalValue] = None
