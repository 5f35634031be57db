"""
食材相关的请求/响应模式
"""

from typing import Optional

from pydantic import BaseModel, Field

from ..models.base import Decimal4


class StockAdjustRequest(BaseModel):
    """库存调整请求，正数入库、负数出库"""
    delta: Decimal4 = Field(..., description="库存变化量")
    reason: Optional[str] = Field(None, max_length=200, description="调整原因")
