"""
制作相关的请求/响应模式
"""

from typing import Optional, Union

from pydantic import BaseModel, Field


class PrepareRequest(BaseModel):
    """制作请求；份数缺失、无法解析或小于1时按1份处理"""
    quantity: Optional[Union[int, float, str]] = Field(None, description="制作份数")
