"""
操作日志路由模块
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.error_handler import create_success_response
from ...services import LogService
from ..deps import get_log_service

router = APIRouter()


@router.get("")
def list_logs(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    action: Optional[str] = None,
    service: LogService = Depends(get_log_service),
):
    """分页获取操作日志"""
    return create_success_response(service.list_logs(page, size, action), "查询成功")
