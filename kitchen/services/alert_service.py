"""
库存告警服务
每次调用都从当前库存实时计算，不做缓存
"""

from typing import Optional

from ..core.database import DatabaseManager, db_manager, fetch_dicts
from ..models.alert import AlertReport, StockAlert

ALERTS_SELECT = """
SELECT i.id, i.name, u.name AS unit_name, i.current_stock, i.min_stock, i.max_stock
FROM ingredients i
LEFT JOIN units u ON i.unit_id = u.id
WHERE i.current_stock < i.min_stock
   OR (i.max_stock IS NOT NULL AND i.current_stock > i.max_stock)
ORDER BY i.current_stock ASC, i.name, i.id
"""


class AlertService:
    """库存告警服务类"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def evaluate(self) -> AlertReport:
        """低库存（current < min）与库存过剩（current > max）两类告警，均按库存升序"""
        with self.db.snapshot() as conn:
            rows = fetch_dicts(conn, ALERTS_SELECT)

        low_stock = []
        surplus = []
        for row in rows:
            alert = StockAlert(**row)
            if alert.current_stock < alert.min_stock:
                low_stock.append(alert)
            elif alert.max_stock is not None and alert.current_stock > alert.max_stock:
                surplus.append(alert)

        return AlertReport(low_stock=low_stock, surplus=surplus)
