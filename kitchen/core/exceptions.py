"""
自定义异常类
提供更精确的错误处理和异常信息
"""

from typing import Any, Dict, List, Optional


class BaseApplicationError(Exception):
    """应用基础异常类"""

    default_error_code = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)


class StorageError(BaseApplicationError):
    """存储层异常（临时性故障，事务已回滚）"""
    default_error_code = "STORAGE_ERROR"


class ConcurrencyError(BaseApplicationError):
    """并发控制错误"""
    default_error_code = "CONCURRENCY_CONFLICT"


class ValidationError(BaseApplicationError):
    """数据验证异常"""
    default_error_code = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """引用的实体不存在"""
    default_error_code = "RESOURCE_NOT_FOUND"
    entity = "资源"

    def __init__(self, entity_id: Any = None, message: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(
            message or f"{self.entity}不存在: {entity_id}",
            details={"id": entity_id} if entity_id is not None else None,
        )


class UnitNotFoundError(NotFoundError):
    """计量单位不存在"""
    default_error_code = "UNIT_NOT_FOUND"
    entity = "计量单位"


class IngredientNotFoundError(NotFoundError):
    """食材不存在"""
    default_error_code = "INGREDIENT_NOT_FOUND"
    entity = "食材"


class MealNotFoundError(NotFoundError):
    """餐品不存在或没有配方"""
    default_error_code = "MEAL_NOT_FOUND"
    entity = "餐品"


class BusinessRuleError(BaseApplicationError):
    """业务规则错误"""
    default_error_code = "BUSINESS_RULE_VIOLATION"


class IngredientInUseError(BusinessRuleError):
    """食材仍被配方引用，无法删除"""
    default_error_code = "INGREDIENT_IN_USE"

    def __init__(self, ingredient_id: int, meal_ids: List[int]):
        super().__init__(
            f"食材 {ingredient_id} 仍被 {len(meal_ids)} 个餐品的配方引用",
            details={"ingredient_id": ingredient_id, "meal_ids": meal_ids},
        )


class InsufficientStockError(BusinessRuleError):
    """库存不足异常，details.shortfalls 列出所有不足的食材"""
    default_error_code = "INSUFFICIENT_STOCK"

    def __init__(self, shortfalls: List[Dict[str, Any]]):
        self.shortfalls = shortfalls
        first = shortfalls[0]
        message = (
            f"库存不足: {first['ingredient_name']} 需要 {first['needed']} {first['unit']}，"
            f"现有 {first['available']}"
        )
        super().__init__(message, details={"shortfalls": shortfalls})
