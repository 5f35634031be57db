"""
库存告警路由模块
"""

from fastapi import APIRouter, Depends

from ...core.error_handler import create_success_response
from ...models.alert import AlertReport
from ...schemas.common import ApiResponse
from ...services import AlertService
from ..deps import get_alert_service

router = APIRouter()


@router.get("", response_model=ApiResponse[AlertReport])
def get_alerts(service: AlertService = Depends(get_alert_service)):
    """低库存与库存过剩告警"""
    return create_success_response(service.evaluate(), "查询成功")
