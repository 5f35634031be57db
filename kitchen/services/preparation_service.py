"""
餐品制作服务
按配方和份数扣减食材库存、计算成本并追加制作记录

主要流程（整体是一个原子工作单元）：
1. 读取餐品配方，确定涉及的食材集合
2. 按食材ID升序获取库存锁，在同一事务中重新读取配方与库存
3. 检查所有食材是否充足，任何一种不足则整体失败、不做任何修改
4. 用 Decimal 累计总成本，写入时四舍五入到两位小数
5. 扣减库存、追加制作记录和操作日志，提交事务后释放锁

业务规则：
- 份数小于1（或无法解析）时按1份处理，超过 settings.max_preparation_quantity 时报 ValidationError
- 配方行引用的食材已不存在时报 ValidationError，不会跳过该行
- 餐品不存在或没有配方时报 MealNotFoundError
- 涉及相同食材的制作互相串行，食材不相交的制作可以并行
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from ..config.settings import settings
from ..core.database import DatabaseManager, db_manager, fetch_dict, fetch_dicts
from ..core.exceptions import (
    ConcurrencyError,
    InsufficientStockError,
    MealNotFoundError,
    ValidationError,
)
from ..core.locks import StockLockRegistry, stock_locks
from ..models.preparation import DeductedIngredient, Preparation, PreparationResult
from .log_service import write_log

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# 锁定期间配方被并发修改时重新解析食材集合的次数上限
MAX_RESOLVE_ATTEMPTS = 3

PREPARATION_LINES_SELECT = """
SELECT mi.ingredient_id, mi.quantity, i.id AS stocked_id, i.current_stock,
       i.name AS ingredient_name, u.name AS unit_name, i.cost_per_unit
FROM meal_ingredients mi
LEFT JOIN ingredients i ON mi.ingredient_id = i.id
LEFT JOIN units u ON i.unit_id = u.id
WHERE mi.meal_id = ?
ORDER BY mi.ingredient_id
"""


def coerce_quantity(value: Any, limit: Optional[int] = None) -> int:
    """
    把请求中的份数转换为 1..limit 之间的整数

    缺失、无法解析或小于1时为1；超过上限时报 ValidationError
    """
    limit = limit or settings.max_preparation_quantity
    if value is None or isinstance(value, bool):
        return 1
    try:
        parsed = Decimal(str(value).strip())
    except (ArithmeticError, ValueError, TypeError):
        return 1
    if parsed.is_nan() or parsed < 1:
        return 1
    # 取整前先与上限比较
    if parsed > limit:
        raise ValidationError(f"制作份数不能超过 {limit}", details={"max_quantity": limit})
    return int(parsed)


def round_cost(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


class PreparationService:
    """餐品制作服务类"""

    def __init__(self, db: Optional[DatabaseManager] = None,
                 locks: Optional[StockLockRegistry] = None):
        self.db = db or db_manager
        self.locks = locks or stock_locks

    def prepare(self, meal_id: int, quantity: Any = 1) -> PreparationResult:
        """
        制作餐品

        Args:
            meal_id: 餐品ID
            quantity: 制作份数，小于1时按1处理

        Returns:
            PreparationResult: 制作记录、总成本和各食材扣减量

        Raises:
            MealNotFoundError: 餐品不存在或没有配方时
            ValidationError: 份数超过上限或配方引用了不存在的食材时
            InsufficientStockError: 任一食材库存不足时（不做任何修改）
            ConcurrencyError: 等待库存锁超时或配方在制作期间反复变动时
            StorageError: 存储失败时（已整体回滚）
        """
        quantity = coerce_quantity(quantity)
        ingredient_ids = self._resolve_ingredient_ids(meal_id)

        for _ in range(MAX_RESOLVE_ATTEMPTS):
            with self.locks.hold(ingredient_ids):
                with self.db.transaction() as conn:
                    lines = fetch_dicts(conn, PREPARATION_LINES_SELECT, [meal_id])
                    if not lines:
                        raise MealNotFoundError(meal_id, f"餐品不存在或没有配方: {meal_id}")

                    line_ids = {line["ingredient_id"] for line in lines}
                    if line_ids <= set(ingredient_ids):
                        return self._apply(conn, meal_id, quantity, lines)

            # 加锁前配方被修改，按新的食材集合重新加锁
            logger.info("Recipe of meal %s changed while locking, retrying", meal_id)
            ingredient_ids = sorted(line_ids)

        raise ConcurrencyError("餐品配方正在被修改，请稍后重试", details={"meal_id": meal_id})

    def list_preparations(self, limit: Optional[int] = None) -> List[Preparation]:
        """按时间倒序列出制作记录"""
        limit = limit or settings.preparations_page_limit
        with self.db.snapshot() as conn:
            rows = fetch_dicts(
                conn,
                """
                SELECT p.id, p.meal_id, m.name AS meal_name, p.quantity_prepared,
                       p.total_cost, p.prepared_at
                FROM preparations p
                LEFT JOIN meals m ON p.meal_id = m.id
                ORDER BY p.prepared_at DESC, p.id DESC
                LIMIT ?
                """,
                [limit],
            )
        return [Preparation(**row) for row in rows]

    def _resolve_ingredient_ids(self, meal_id: int) -> List[int]:
        with self.db.snapshot() as conn:
            rows = conn.execute(
                "SELECT ingredient_id FROM meal_ingredients WHERE meal_id = ? ORDER BY ingredient_id",
                [meal_id],
            ).fetchall()
        if not rows:
            raise MealNotFoundError(meal_id, f"餐品不存在或没有配方: {meal_id}")
        return [row[0] for row in rows]

    def _apply(self, conn, meal_id: int, quantity: int,
               lines: List[Dict[str, Any]]) -> PreparationResult:
        """在已加锁的事务中完成检查、计费、扣减和记录"""
        missing = [line["ingredient_id"] for line in lines if line["stocked_id"] is None]
        if missing:
            raise ValidationError(
                f"餐品 {meal_id} 的配方引用了不存在的食材: {missing}",
                details={"meal_id": meal_id, "ingredient_ids": missing},
            )

        shortfalls = []
        total_cost = Decimal("0")
        for line in lines:
            needed = line["quantity"] * quantity
            line["needed"] = needed
            if needed > line["current_stock"]:
                shortfalls.append({
                    "ingredient_id": line["ingredient_id"],
                    "ingredient_name": line["ingredient_name"],
                    "needed": needed,
                    "available": line["current_stock"],
                    "unit": line["unit_name"],
                })
            total_cost += needed * line["cost_per_unit"]

        if shortfalls:
            logger.info("Preparation of meal %s x%d rejected: %d ingredient(s) short",
                        meal_id, quantity, len(shortfalls))
            raise InsufficientStockError(shortfalls)

        for line in lines:
            conn.execute(
                "UPDATE ingredients SET current_stock = current_stock - ?, updated_at = now() WHERE id = ?",
                [line["needed"], line["ingredient_id"]],
            )

        preparation = self._insert_preparation(conn, meal_id, quantity, round_cost(total_cost))

        deducted = [
            DeductedIngredient(
                ingredient_id=line["ingredient_id"],
                ingredient_name=line["ingredient_name"],
                quantity_deducted=line["needed"],
                unit=line["unit_name"],
            )
            for line in lines
        ]

        write_log(conn, "meal_prepare", {
            "preparation_id": preparation.id,
            "meal_id": meal_id,
            "quantity": quantity,
            "total_cost": str(preparation.total_cost),
            "deducted": {str(d.ingredient_id): str(d.quantity_deducted) for d in deducted},
        })

        return PreparationResult(
            preparation=preparation,
            total_cost=preparation.total_cost,
            deducted=deducted,
        )

    def _insert_preparation(self, conn, meal_id: int, quantity: int,
                            total_cost: Decimal) -> Preparation:
        row = fetch_dict(
            conn,
            """
            INSERT INTO preparations(meal_id, quantity_prepared, total_cost, prepared_at)
            VALUES (?, ?, ?, ?)
            RETURNING id, meal_id, quantity_prepared, total_cost, prepared_at
            """,
            [meal_id, quantity, total_cost, datetime.now()],
        )
        return Preparation(**row)
