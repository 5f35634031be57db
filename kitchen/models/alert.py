"""
库存告警数据模型
"""

from typing import List, Optional

from pydantic import BaseModel

from .base import DecimalValue


class StockAlert(BaseModel):
    """单个食材的库存告警"""
    id: int
    name: str
    unit_name: Optional[str] = None
    current_stock: DecimalValue
    min_stock: DecimalValue
    max_stock: Optional[DecimalValue] = None


class AlertReport(BaseModel):
    """低库存与库存过剩两类告警"""
    low_stock: List[StockAlert]
    surplus: List[StockAlert]
