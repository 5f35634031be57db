"""
操作日志服务
业务变更与其日志写在同一个事务里，保证日志与数据一致
"""

import json
import logging
from typing import Any, Dict, Optional

from ..core.database import DatabaseManager, db_manager, fetch_dicts

logger = logging.getLogger(__name__)


def write_log(conn, action: str, detail: Dict[str, Any]):
    """在调用方的事务中追加一条操作日志"""
    conn.execute(
        "INSERT INTO logs(action, detail_json) VALUES (?, ?)",
        [action, json.dumps(detail, ensure_ascii=False, default=str)],
    )
    logger.info("%s %s", action, detail)


class LogService:
    """操作日志查询"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def list_logs(self, page: int = 1, size: int = 20, action: Optional[str] = None) -> Dict[str, Any]:
        """分页获取操作日志，最新的在前"""
        page = max(1, page)
        size = max(1, min(size, 100))
        offset = (page - 1) * size
        where = "WHERE action = ?" if action else ""
        params = [action] if action else []

        with self.db.snapshot() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM logs {where}", params).fetchone()[0]
            rows = fetch_dicts(
                conn,
                f"""
                SELECT log_id, action, detail_json, created_at
                FROM logs {where}
                ORDER BY created_at DESC, log_id DESC
                LIMIT ? OFFSET ?
                """,
                params + [size, offset],
            )

        for row in rows:
            detail = row["detail_json"]
            row["detail"] = json.loads(detail) if isinstance(detail, str) else detail
            del row["detail_json"]

        return {
            "logs": rows,
            "total": total,
            "page": page,
            "size": size,
            "pages": (total + size - 1) // size,
        }
