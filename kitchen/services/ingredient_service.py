"""
食材台账服务
持有每种食材的库存、告警阈值和单位成本

主要功能：
- 食材的增删改查
- 库存增减（adjust_stock），本身不做下限检查，由调用方负责
- 写入时校验单位存在、max_stock >= min_stock

修改库存的操作都持有对应食材的库存锁，与餐品制作互相串行
"""

from decimal import Decimal
from typing import List, Optional

from ..core.database import DatabaseManager, db_manager, fetch_dict, fetch_dicts
from ..core.exceptions import (
    IngredientInUseError,
    IngredientNotFoundError,
    ValidationError,
)
from ..core.locks import StockLockRegistry, stock_locks
from ..models.ingredient import Ingredient, IngredientCreate, IngredientUpdate
from .log_service import write_log
from .unit_service import unit_exists

INGREDIENT_SELECT = """
SELECT i.id, i.name, i.unit_id, u.name AS unit_name, i.cost_per_unit,
       i.current_stock, i.min_stock, i.max_stock, i.created_at, i.updated_at
FROM ingredients i
LEFT JOIN units u ON u.id = i.unit_id
"""


def load_ingredient(conn, ingredient_id: int) -> Ingredient:
    """在调用方的连接中读取单个食材"""
    row = fetch_dict(conn, INGREDIENT_SELECT + " WHERE i.id = ?", [ingredient_id])
    if not row:
        raise IngredientNotFoundError(ingredient_id)
    return Ingredient(**row)


def _check_delta(delta: Decimal):
    """库存变化量必须能无损写入 DECIMAL(18,4)"""
    if not delta.is_finite():
        raise ValidationError("库存变化量无效", details={"delta": str(delta)})
    normalized = delta.normalize()
    if normalized.as_tuple().exponent < -4 or normalized.adjusted() >= 14:
        raise ValidationError("库存变化量超出精度，最多4位小数、14位整数", details={"delta": str(delta)})


def _check_thresholds(min_stock: Decimal, max_stock: Optional[Decimal]):
    if max_stock is not None and max_stock < min_stock:
        raise ValidationError(
            "max_stock 不能小于 min_stock",
            details={"min_stock": str(min_stock), "max_stock": str(max_stock)},
        )


class IngredientService:
    """食材台账服务类"""

    def __init__(self, db: Optional[DatabaseManager] = None,
                 locks: Optional[StockLockRegistry] = None):
        self.db = db or db_manager
        self.locks = locks or stock_locks

    def get_ingredient(self, ingredient_id: int) -> Ingredient:
        """
        获取单个食材

        Raises:
            IngredientNotFoundError: 食材不存在时
        """
        with self.db.snapshot() as conn:
            return load_ingredient(conn, ingredient_id)

    def list_ingredients(self) -> List[Ingredient]:
        """按名称排序列出全部食材"""
        with self.db.snapshot() as conn:
            rows = fetch_dicts(conn, INGREDIENT_SELECT + " ORDER BY i.name, i.id")
        return [Ingredient(**row) for row in rows]

    def create_ingredient(self, data: IngredientCreate) -> Ingredient:
        """
        创建食材

        Raises:
            ValidationError: 单位不存在时
        """
        with self.db.transaction() as conn:
            if not unit_exists(conn, data.unit_id):
                raise ValidationError(f"计量单位不存在: {data.unit_id}", details={"unit_id": data.unit_id})

            ingredient_id = conn.execute(
                """
                INSERT INTO ingredients(name, unit_id, cost_per_unit, min_stock, max_stock, current_stock)
                VALUES (?, ?, ?, ?, ?, ?)
                RETURNING id
                """,
                [data.name, data.unit_id, data.cost_per_unit, data.min_stock,
                 data.max_stock, data.current_stock],
            ).fetchone()[0]

            write_log(conn, "ingredient_create", {"ingredient_id": ingredient_id, "name": data.name})
            return load_ingredient(conn, ingredient_id)

    def update_ingredient(self, ingredient_id: int, data: IngredientUpdate) -> Ingredient:
        """
        部分更新食材字段

        Raises:
            ValidationError: 没有要更新的字段、单位不存在或阈值不合法时
            IngredientNotFoundError: 食材不存在时
        """
        changes = data.changes()
        if not changes:
            raise ValidationError("没有要更新的字段")

        with self.locks.hold([ingredient_id]):
            with self.db.transaction() as conn:
                current = load_ingredient(conn, ingredient_id)

                if "unit_id" in changes and not unit_exists(conn, changes["unit_id"]):
                    raise ValidationError(f"计量单位不存在: {changes['unit_id']}",
                                          details={"unit_id": changes["unit_id"]})

                _check_thresholds(
                    changes.get("min_stock", current.min_stock),
                    changes["max_stock"] if "max_stock" in changes else current.max_stock,
                )

                assignments = ", ".join(f"{field} = ?" for field in changes)
                conn.execute(
                    f"UPDATE ingredients SET {assignments}, updated_at = now() WHERE id = ?",
                    list(changes.values()) + [ingredient_id],
                )

                write_log(conn, "ingredient_update", {"ingredient_id": ingredient_id, "changes": changes})
                return load_ingredient(conn, ingredient_id)

    def adjust_stock(self, ingredient_id: int, delta: Decimal, reason: Optional[str] = None) -> Ingredient:
        """
        库存增减：current_stock += delta

        不检查下限/上限，扣减前的充足性检查由调用方完成

        Raises:
            ValidationError: 变化量超出存储精度时
            IngredientNotFoundError: 食材不存在时
        """
        delta = Decimal(delta)
        _check_delta(delta)
        with self.locks.hold([ingredient_id]):
            with self.db.transaction() as conn:
                updated = conn.execute(
                    "UPDATE ingredients SET current_stock = current_stock + ?, updated_at = now() "
                    "WHERE id = ? RETURNING id",
                    [delta, ingredient_id],
                ).fetchone()
                if not updated:
                    raise IngredientNotFoundError(ingredient_id)

                write_log(conn, "stock_adjust", {
                    "ingredient_id": ingredient_id,
                    "delta": str(delta),
                    "reason": reason,
                })
                return load_ingredient(conn, ingredient_id)

    def delete_ingredient(self, ingredient_id: int) -> None:
        """
        删除食材

        Raises:
            IngredientNotFoundError: 食材不存在时
            IngredientInUseError: 仍有配方引用该食材时
        """
        with self.locks.hold([ingredient_id]):
            with self.db.transaction() as conn:
                load_ingredient(conn, ingredient_id)

                meal_ids = [row[0] for row in conn.execute(
                    "SELECT DISTINCT meal_id FROM meal_ingredients WHERE ingredient_id = ? ORDER BY meal_id",
                    [ingredient_id],
                ).fetchall()]
                if meal_ids:
                    raise IngredientInUseError(ingredient_id, meal_ids)

                conn.execute("DELETE FROM ingredients WHERE id = ?", [ingredient_id])
                write_log(conn, "ingredient_delete", {"ingredient_id": ingredient_id})
