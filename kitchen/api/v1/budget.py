"""
预算路由模块
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ...core.error_handler import create_success_response
from ...models.budget import BudgetPeriod, BudgetPeriodCreate, BudgetUsage
from ...schemas.common import ApiResponse
from ...services import BudgetService
from ..deps import get_budget_service

router = APIRouter()


@router.get("", response_model=ApiResponse[BudgetUsage])
def get_budget_usage(service: BudgetService = Depends(get_budget_service)):
    """当前预算周期的使用情况"""
    return create_success_response(service.usage(), "查询成功")


@router.get("/periods", response_model=ApiResponse[List[BudgetPeriod]])
def list_budget_periods(service: BudgetService = Depends(get_budget_service)):
    """全部预算周期"""
    return create_success_response(service.list_periods(), "查询成功")


@router.post("", response_model=ApiResponse[BudgetPeriod], status_code=status.HTTP_201_CREATED)
def add_budget_period(req: BudgetPeriodCreate, service: BudgetService = Depends(get_budget_service)):
    """新增预算周期"""
    return create_success_response(service.add_period(req), "预算周期已创建")
