"""
计量单位路由模块
"""

from typing import List

from fastapi import APIRouter, Depends

from ...core.error_handler import create_success_response
from ...models.unit import Unit
from ...schemas.common import ApiResponse
from ...services import UnitService
from ..deps import get_unit_service

router = APIRouter()


@router.get("", response_model=ApiResponse[List[Unit]])
def list_units(service: UnitService = Depends(get_unit_service)):
    """获取全部计量单位"""
    return create_success_response(service.list_units(), "查询成功")
