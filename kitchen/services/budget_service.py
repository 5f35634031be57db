"""
预算服务
存储预算周期，并根据制作记录实时计算当前周期的花费与使用率
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from ..core.database import DatabaseManager, db_manager, fetch_dict, fetch_dicts
from ..models.budget import BudgetPeriod, BudgetPeriodCreate, BudgetUsage
from .log_service import write_log

CURRENT_PERIOD_SELECT = """
SELECT id, period_start, period_end, budget_amount
FROM budget_settings
WHERE period_start <= ? AND period_end >= ?
ORDER BY period_start DESC, id DESC
LIMIT 1
"""


class BudgetService:
    """预算服务类"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def current_period(self, today: Optional[date] = None) -> Optional[BudgetPeriod]:
        """包含今天的周期中开始日期最晚的一个，没有则为 None"""
        today = today or date.today()
        with self.db.snapshot() as conn:
            return self._current_period(conn, today)

    def usage(self, today: Optional[date] = None) -> BudgetUsage:
        """
        当前周期的预算使用情况

        周期与花费在同一快照中读取；没有当前周期时花费为0，
        预算、剩余和使用率均为 None。剩余可以为负（超支）
        """
        today = today or date.today()
        with self.db.snapshot() as conn:
            period = self._current_period(conn, today)
            if period is None:
                return BudgetUsage(period=None, spent=Decimal("0"))

            spent = conn.execute(
                """
                SELECT COALESCE(SUM(total_cost), 0)
                FROM preparations
                WHERE CAST(prepared_at AS DATE) BETWEEN ? AND ?
                """,
                [period.period_start, period.period_end],
            ).fetchone()[0]

        spent = Decimal(spent)
        budget = period.budget_amount
        usage_percent = None
        if budget > 0:
            usage_percent = round(float(min(Decimal(100), spent * 100 / budget)), 2)

        return BudgetUsage(
            period=period,
            budget_amount=budget,
            spent=spent,
            remaining=budget - spent,
            usage_percent=usage_percent,
        )

    def add_period(self, data: BudgetPeriodCreate) -> BudgetPeriod:
        """新增预算周期，不检查与已有周期的重叠"""

        with self.db.transaction() as conn:
            row = fetch_dict(
                conn,
                """
                INSERT INTO budget_settings(period_start, period_end, budget_amount)
                VALUES (?, ?, ?)
                RETURNING id, period_start, period_end, budget_amount
                """,
                [data.period_start, data.period_end, data.budget_amount],
            )
            write_log(conn, "budget_period_create", {
                "period_id": row["id"],
                "period_start": str(data.period_start),
                "period_end": str(data.period_end),
                "budget_amount": str(data.budget_amount),
            })
        return BudgetPeriod(**row)

    def list_periods(self) -> List[BudgetPeriod]:
        """所有预算周期，开始日期最新的在前"""
        with self.db.snapshot() as conn:
            rows = fetch_dicts(
                conn,
                "SELECT id, period_start, period_end, budget_amount FROM budget_settings "
                "ORDER BY period_start DESC, id DESC",
            )
        return [BudgetPeriod(**row) for row in rows]

    @staticmethod
    def _current_period(conn, today: date) -> Optional[BudgetPeriod]:
        row = fetch_dict(conn, CURRENT_PERIOD_SELECT, [today, today])
        return BudgetPeriod(**row) if row else None
