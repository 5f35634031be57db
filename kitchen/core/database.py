"""
数据库连接和管理模块
基于 DuckDB 的单库存储，每个工作单元使用独立游标，
写操作在事务中执行，读操作在只读快照中执行
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence

import duckdb

from .exceptions import ConcurrencyError, StorageError
from ..config.settings import settings

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"

# 默认计量单位，仅在 units 表为空时写入
DEFAULT_UNITS = ("kg", "g", "L", "ml", "pcs", "dozen")

# 完整的表结构定义
SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS units_id_seq;
CREATE TABLE IF NOT EXISTS units (
  id INTEGER DEFAULT nextval('units_id_seq') PRIMARY KEY,
  name TEXT UNIQUE NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS ingredients_id_seq;
CREATE TABLE IF NOT EXISTS ingredients (
  id INTEGER DEFAULT nextval('ingredients_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  unit_id INTEGER NOT NULL,
  cost_per_unit DECIMAL(18,4) NOT NULL DEFAULT 0 CHECK (cost_per_unit >= 0),
  current_stock DECIMAL(18,4) NOT NULL DEFAULT 0,
  min_stock DECIMAL(18,4) NOT NULL DEFAULT 0 CHECK (min_stock >= 0),
  max_stock DECIMAL(18,4),
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS meals_id_seq;
CREATE TABLE IF NOT EXISTS meals (
  id INTEGER DEFAULT nextval('meals_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  description TEXT,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS meal_ingredients (
  meal_id INTEGER NOT NULL,
  ingredient_id INTEGER NOT NULL,
  quantity DECIMAL(18,4) NOT NULL CHECK (quantity > 0)
);

CREATE INDEX IF NOT EXISTS idx_meal_ingredients_meal ON meal_ingredients(meal_id);

CREATE SEQUENCE IF NOT EXISTS preparations_id_seq;
CREATE TABLE IF NOT EXISTS preparations (
  id INTEGER DEFAULT nextval('preparations_id_seq') PRIMARY KEY,
  meal_id INTEGER NOT NULL,
  quantity_prepared INTEGER NOT NULL CHECK (quantity_prepared >= 1),
  total_cost DECIMAL(18,2) NOT NULL CHECK (total_cost >= 0),
  prepared_at TIMESTAMP NOT NULL DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS budget_settings_id_seq;
CREATE TABLE IF NOT EXISTS budget_settings (
  id INTEGER DEFAULT nextval('budget_settings_id_seq') PRIMARY KEY,
  period_start DATE NOT NULL,
  period_end DATE NOT NULL,
  budget_amount DECIMAL(18,2) NOT NULL CHECK (budget_amount >= 0),
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  action TEXT NOT NULL,
  detail_json JSON,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


def resolve_db_path(database_url: str) -> str:
    """把 duckdb:// 形式的URL转换为文件路径"""
    path = database_url
    if path.startswith("duckdb://"):
        path = path[len("duckdb://"):]
    if path in (MEMORY_PATH, "/" + MEMORY_PATH, ""):
        return MEMORY_PATH
    return path


def fetch_dicts(conn, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
    """执行查询并以字典列表返回结果"""
    cursor = conn.execute(query, list(params or []))
    columns = [col[0] for col in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def fetch_dict(conn, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
    """执行查询并返回单条字典结果"""
    rows = fetch_dicts(conn, query, params)
    return rows[0] if rows else None


def _is_conflict(error: Exception) -> bool:
    if isinstance(error, duckdb.TransactionException):
        return True
    text = str(error).lower()
    return "conflict" in text or "serialization" in text


class DatabaseManager:
    """数据库管理器，封装连接、表结构和事务"""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path or resolve_db_path(settings.database_url)

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """获取根连接（首次访问时建库）"""
        with self._lock:
            if self._connection is None:
                if self.db_path != MEMORY_PATH:
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                try:
                    self._connection = duckdb.connect(self.db_path)
                except duckdb.Error as e:
                    raise StorageError(f"无法打开数据库 {self.db_path}: {e}")
                self._init_schema()
            return self._connection

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """为当前工作单元创建独立游标（DuckDB连接本身不是线程安全的）"""
        root = self.connection
        with self._lock:
            return root.cursor()

    def _init_schema(self):
        """初始化数据库表结构和默认计量单位"""
        try:
            self._connection.execute(SCHEMA_SQL)
            count = self._connection.execute("SELECT COUNT(*) FROM units").fetchone()[0]
            if count == 0:
                for name in DEFAULT_UNITS:
                    self._connection.execute("INSERT INTO units(name) VALUES (?)", [name])
                logger.info("Seeded %d default units", len(DEFAULT_UNITS))
        except duckdb.Error as e:
            raise StorageError(f"初始化表结构失败: {e}")

    def init_database(self):
        """初始化数据库"""
        self.connection
        logger.info("Database ready at %s", self.db_path)

    def close(self):
        """关闭根连接"""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        写事务上下文管理器

        块内任何异常都会整体回滚；DuckDB 错误转换为
        ConcurrencyError（写冲突）或 StorageError，业务异常原样抛出
        """
        conn = self.cursor()
        try:
            conn.execute("BEGIN TRANSACTION")
            yield conn
            conn.execute("COMMIT")
        except Exception as e:
            self._rollback(conn)
            if isinstance(e, duckdb.Error):
                if _is_conflict(e):
                    logger.warning("Transaction conflict: %s", e)
                    raise ConcurrencyError("系统繁忙，请稍后重试", details={"reason": str(e)}) from e
                logger.error("Transaction failed and was rolled back: %s", e)
                raise StorageError(f"数据库操作失败: {e}") from e
            raise
        finally:
            conn.close()

    @contextmanager
    def snapshot(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """只读快照：块内所有查询看到同一时间点的一致数据"""
        conn = self.cursor()
        try:
            conn.execute("BEGIN TRANSACTION")
            yield conn
        except duckdb.Error as e:
            raise StorageError(f"数据库查询失败: {e}") from e
        finally:
            self._rollback(conn)
            conn.close()

    @staticmethod
    def _rollback(conn):
        try:
            conn.execute("ROLLBACK")
        except duckdb.Error:
            # 事务已结束（提交成功或从未开始）
            pass

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """执行查询并返回单条结果"""
        with self.snapshot() as conn:
            return conn.execute(query, params or []).fetchone()


# 全局数据库管理器实例
db_manager = DatabaseManager()

