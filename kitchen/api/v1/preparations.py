"""
制作记录路由模块
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...core.error_handler import create_success_response
from ...models.preparation import Preparation
from ...schemas.common import ApiResponse
from ...services import PreparationService
from ..deps import get_preparation_service

router = APIRouter()


@router.get("", response_model=ApiResponse[List[Preparation]])
def list_preparations(limit: Optional[int] = Query(None, ge=1, le=1000),
                      service: PreparationService = Depends(get_preparation_service)):
    """最近的制作记录，最新的在前"""
    return create_success_response(service.list_preparations(limit), "查询成功")
