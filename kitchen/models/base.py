"""
基础数据模型
定义通用的模型基类和常用字段
"""

from decimal import Decimal
from typing import Annotated, Optional
from datetime import datetime

from pydantic import BaseModel, Field, PlainSerializer

# 金额与数量在核心内部始终是 Decimal，序列化为 JSON 时输出数字
DecimalValue = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

# 写入字段的精度与列定义 DECIMAL(18,4) / DECIMAL(18,2) 一致
Decimal4 = Annotated[Decimal, Field(max_digits=18, decimal_places=4)]
Decimal2 = Annotated[Decimal, Field(max_digits=18, decimal_places=2)]


class TimestampMixin(BaseModel):
    """时间戳混入类"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BaseEntity(BaseModel):
    """基础实体模型"""

    model_config = {"from_attributes": True}
