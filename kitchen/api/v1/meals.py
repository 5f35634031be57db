"""
餐品路由模块
包含餐品配方管理和制作接口
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status

from ...core.error_handler import create_success_response
from ...models.meal import Meal, MealCreate, MealUpdate
from ...models.preparation import PreparationResult
from ...schemas.common import ApiResponse
from ...schemas.preparation import PrepareRequest
from ...services import MealService, PreparationService
from ..deps import get_meal_service, get_preparation_service

router = APIRouter()


@router.get("", response_model=ApiResponse[List[Meal]])
def list_meals(service: MealService = Depends(get_meal_service)):
    """获取餐品列表，附带配方行"""
    return create_success_response(service.list_meals(), "查询成功")


@router.get("/{meal_id}", response_model=ApiResponse[Meal])
def get_meal(meal_id: int, service: MealService = Depends(get_meal_service)):
    """获取单个餐品"""
    return create_success_response(service.get_meal(meal_id), "查询成功")


@router.post("", response_model=ApiResponse[Meal], status_code=status.HTTP_201_CREATED)
def create_meal(req: MealCreate, service: MealService = Depends(get_meal_service)):
    """创建餐品及配方"""
    return create_success_response(service.create_meal(req), "餐品已创建")


@router.patch("/{meal_id}", response_model=ApiResponse[Meal])
def update_meal(meal_id: int, req: MealUpdate, service: MealService = Depends(get_meal_service)):
    """更新餐品，给出 ingredients 时整体替换配方"""
    return create_success_response(service.update_meal(meal_id, req), "餐品已更新")


@router.delete("/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_meal(meal_id: int, service: MealService = Depends(get_meal_service)):
    """删除餐品"""
    service.delete_meal(meal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{meal_id}/prepare", response_model=ApiResponse[PreparationResult],
             status_code=status.HTTP_201_CREATED)
def prepare_meal(meal_id: int, req: Optional[PrepareRequest] = None,
                 service: PreparationService = Depends(get_preparation_service)):
    """制作餐品：扣减库存并记录成本"""
    quantity = req.quantity if req else None
    return create_success_response(service.prepare(meal_id, quantity), "制作完成")
