"""
餐品配方服务
处理餐品的CRUD操作和配方行的整体替换

配方行在读取时与食材表关联，总是反映食材的当前成本；
替换配方是"先删后插"，与餐品字段更新处于同一事务，部分替换不可见。
写入配方时持有所引用食材的库存锁，与删除食材互相串行，
不会留下引用已删除食材的配方行
"""

from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from ..core.database import DatabaseManager, db_manager, fetch_dict, fetch_dicts
from ..core.exceptions import MealNotFoundError, ValidationError
from ..core.locks import StockLockRegistry, stock_locks
from ..models.meal import Meal, MealCreate, MealUpdate, RecipeLine, RecipeLineInput
from .log_service import write_log

RECIPE_LINES_SELECT = """
SELECT mi.meal_id, mi.ingredient_id, mi.quantity,
       i.name AS ingredient_name, u.name AS unit_name, i.cost_per_unit
FROM meal_ingredients mi
JOIN ingredients i ON mi.ingredient_id = i.id
LEFT JOIN units u ON i.unit_id = u.id
"""


def _lines_by_meal(rows: List[dict]) -> Dict[int, List[RecipeLine]]:
    grouped: Dict[int, List[RecipeLine]] = defaultdict(list)
    for row in rows:
        meal_id = row.pop("meal_id")
        grouped[meal_id].append(RecipeLine(**row))
    return grouped


def load_meal(conn, meal_id: int) -> Meal:
    """在调用方的连接中读取餐品及其配方"""
    row = fetch_dict(
        conn,
        "SELECT id, name, description, created_at, updated_at FROM meals WHERE id = ?",
        [meal_id],
    )
    if not row:
        raise MealNotFoundError(meal_id)
    lines = fetch_dicts(conn, RECIPE_LINES_SELECT + " WHERE mi.meal_id = ? ORDER BY i.name", [meal_id])
    return Meal(**row, ingredients=_lines_by_meal(lines).get(meal_id, []))


class MealService:
    """餐品配方服务"""

    def __init__(self, db: Optional[DatabaseManager] = None,
                 locks: Optional[StockLockRegistry] = None):
        self.db = db or db_manager
        self.locks = locks or stock_locks

    def get_meal(self, meal_id: int) -> Meal:
        """
        获取单个餐品

        Raises:
            MealNotFoundError: 餐品不存在时
        """
        with self.db.snapshot() as conn:
            return load_meal(conn, meal_id)

    def list_meals(self) -> List[Meal]:
        """按名称列出所有餐品，每个餐品附带关联后的配方行"""
        with self.db.snapshot() as conn:
            meals = fetch_dicts(
                conn,
                "SELECT id, name, description, created_at, updated_at FROM meals ORDER BY name, id",
            )
            lines = _lines_by_meal(fetch_dicts(conn, RECIPE_LINES_SELECT + " ORDER BY i.name"))

        return [Meal(**meal, ingredients=lines.get(meal["id"], [])) for meal in meals]

    def create_meal(self, data: MealCreate) -> Meal:
        """
        创建餐品及其配方

        Raises:
            ValidationError: 配方引用了不存在的食材时
        """
        with self.locks.hold(line.ingredient_id for line in data.ingredients):
            with self.db.transaction() as conn:
                meal_id = conn.execute(
                    "INSERT INTO meals(name, description) VALUES (?, ?) RETURNING id",
                    [data.name, data.description],
                ).fetchone()[0]

                self._replace_lines(conn, meal_id, data.ingredients)

                write_log(conn, "meal_create", {
                    "meal_id": meal_id,
                    "name": data.name,
                    "lines": len(data.ingredients),
                })
                return load_meal(conn, meal_id)

    def update_meal(self, meal_id: int, data: MealUpdate) -> Meal:
        """
        更新餐品；data.ingredients 不为 None 时整体替换配方

        Raises:
            MealNotFoundError: 餐品不存在时
            ValidationError: 配方引用了不存在的食材时
        """
        changes = data.model_dump(exclude_unset=True, exclude={"ingredients"})
        if "name" in changes and changes["name"] is None:
            raise ValidationError("name 不能为空")

        referenced = [line.ingredient_id for line in data.ingredients or []]
        with self.locks.hold(referenced):
            with self.db.transaction() as conn:
                if conn.execute("SELECT 1 FROM meals WHERE id = ?", [meal_id]).fetchone() is None:
                    raise MealNotFoundError(meal_id)

                if changes:
                    assignments = ", ".join(f"{field} = ?" for field in changes)
                    conn.execute(
                        f"UPDATE meals SET {assignments}, updated_at = now() WHERE id = ?",
                        list(changes.values()) + [meal_id],
                    )

                if data.ingredients is not None:
                    self._replace_lines(conn, meal_id, data.ingredients)

                write_log(conn, "meal_update", {
                    "meal_id": meal_id,
                    "fields": sorted(changes),
                    "lines_replaced": data.ingredients is not None,
                })
                return load_meal(conn, meal_id)

    def upsert_lines(self, meal_id: int, lines: Sequence[RecipeLineInput]) -> Meal:
        """整体替换餐品配方"""
        return self.update_meal(meal_id, MealUpdate(ingredients=list(lines)))

    def delete_meal(self, meal_id: int) -> None:
        """
        删除餐品及其配方，历史制作记录保留

        Raises:
            MealNotFoundError: 餐品不存在时
        """
        with self.db.transaction() as conn:
            deleted = conn.execute("DELETE FROM meals WHERE id = ? RETURNING id", [meal_id]).fetchone()
            if not deleted:
                raise MealNotFoundError(meal_id)
            conn.execute("DELETE FROM meal_ingredients WHERE meal_id = ?", [meal_id])
            write_log(conn, "meal_delete", {"meal_id": meal_id})

    def _replace_lines(self, conn, meal_id: int, lines: Sequence[RecipeLineInput]):
        """先删后插，调用方负责事务并持有所引用食材的库存锁"""
        ids = [line.ingredient_id for line in lines]
        if len(ids) != len(set(ids)):
            raise ValidationError("同一餐品的配方中每种食材只能出现一次")

        if ids:
            placeholders = ", ".join("?" for _ in ids)
            found = {row[0] for row in conn.execute(
                f"SELECT id FROM ingredients WHERE id IN ({placeholders})", ids
            ).fetchall()}
            missing = [i for i in ids if i not in found]
            if missing:
                raise ValidationError(f"配方引用了不存在的食材: {missing}", details={"ingredient_ids": missing})

        conn.execute("DELETE FROM meal_ingredients WHERE meal_id = ?", [meal_id])
        for line in lines:
            conn.execute(
                "INSERT INTO meal_ingredients(meal_id, ingredient_id, quantity) VALUES (?, ?, ?)",
                [meal_id, line.ingredient_id, line.quantity],
            )
