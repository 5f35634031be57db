"""
计量单位目录
"""

from typing import List, Optional

from ..core.database import DatabaseManager, db_manager, fetch_dict, fetch_dicts
from ..core.exceptions import UnitNotFoundError
from ..models.unit import Unit


class UnitService:
    """计量单位只读查询"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def list_units(self) -> List[Unit]:
        with self.db.snapshot() as conn:
            rows = fetch_dicts(conn, "SELECT id, name FROM units ORDER BY name")
        return [Unit(**row) for row in rows]

    def get_unit(self, unit_id: int) -> Unit:
        with self.db.snapshot() as conn:
            row = fetch_dict(conn, "SELECT id, name FROM units WHERE id = ?", [unit_id])
        if not row:
            raise UnitNotFoundError(unit_id)
        return Unit(**row)


def unit_exists(conn, unit_id: int) -> bool:
    """在调用方的连接中检查单位是否存在"""
    return conn.execute("SELECT 1 FROM units WHERE id = ?", [unit_id]).fetchone() is not None
