"""
预算周期相关数据模型
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .base import BaseEntity, Decimal2, DecimalValue


class BudgetPeriodCreate(BaseModel):
    """预算周期创建模型（允许与已有周期重叠）"""
    period_start: date = Field(..., description="开始日期")
    period_end: date = Field(..., description="结束日期（含）")
    budget_amount: Decimal2 = Field(..., ge=0, description="预算金额")

    @model_validator(mode="after")
    def check_range(self):
        if self.period_end < self.period_start:
            raise ValueError("period_end 不能早于 period_start")
        return self


class BudgetPeriod(BaseEntity):
    """预算周期"""
    id: int
    period_start: date
    period_end: date
    budget_amount: DecimalValue


class BudgetUsage(BaseModel):
    """当前预算周期的使用情况"""
    period: Optional[BudgetPeriod] = None
    budget_amount: Optional[DecimalValue] = None
    spent: DecimalValue
    remaining: Optional[DecimalValue] = None
    usage_percent: Optional[float] = None
