"""
食材路由模块
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...core.error_handler import create_success_response
from ...models.ingredient import Ingredient, IngredientCreate, IngredientUpdate
from ...schemas.common import ApiResponse
from ...schemas.ingredient import StockAdjustRequest
from ...services import IngredientService
from ..deps import get_ingredient_service

router = APIRouter()


@router.get("", response_model=ApiResponse[List[Ingredient]])
def list_ingredients(service: IngredientService = Depends(get_ingredient_service)):
    """获取食材列表（按名称排序）"""
    return create_success_response(service.list_ingredients(), "查询成功")


@router.get("/{ingredient_id}", response_model=ApiResponse[Ingredient])
def get_ingredient(ingredient_id: int, service: IngredientService = Depends(get_ingredient_service)):
    """获取单个食材"""
    return create_success_response(service.get_ingredient(ingredient_id), "查询成功")


@router.post("", response_model=ApiResponse[Ingredient], status_code=status.HTTP_201_CREATED)
def create_ingredient(req: IngredientCreate, service: IngredientService = Depends(get_ingredient_service)):
    """创建食材"""
    return create_success_response(service.create_ingredient(req), "食材已创建")


@router.patch("/{ingredient_id}", response_model=ApiResponse[Ingredient])
def update_ingredient(ingredient_id: int, req: IngredientUpdate,
                      service: IngredientService = Depends(get_ingredient_service)):
    """部分更新食材"""
    return create_success_response(service.update_ingredient(ingredient_id, req), "食材已更新")


@router.post("/{ingredient_id}/adjust", response_model=ApiResponse[Ingredient])
def adjust_stock(ingredient_id: int, req: StockAdjustRequest,
                 service: IngredientService = Depends(get_ingredient_service)):
    """调整库存（入库或盘点修正）"""
    return create_success_response(
        service.adjust_stock(ingredient_id, req.delta, req.reason), "库存已调整"
    )


@router.delete("/{ingredient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ingredient(ingredient_id: int, service: IngredientService = Depends(get_ingredient_service)):
    """删除未被配方引用的食材"""
    service.delete_ingredient(ingredient_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
