"""
计量单位模型
"""

from pydantic import Field
from .base import BaseEntity


class Unit(BaseEntity):
    """计量单位（初始化时写入的只读参考数据）"""
    id: int = Field(..., description="单位ID")
    name: str = Field(..., description="单位名称")
