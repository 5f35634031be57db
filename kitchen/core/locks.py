"""
食材库存锁
为每个食材提供一把互斥锁；涉及多个食材的操作按食材ID升序加锁，
保证不同操作之间不会死锁，互不相交的食材集合可以完全并行
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from .exceptions import ConcurrencyError
from ..config.settings import settings

logger = logging.getLogger(__name__)


class StockLockRegistry:
    """按食材ID分配的锁表"""

    def __init__(self, timeout: Optional[float] = None):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}
        self.timeout = settings.stock_lock_timeout if timeout is None else timeout

    def _lock_for(self, ingredient_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(ingredient_id)
            if lock is None:
                lock = self._locks[ingredient_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, ingredient_ids: Iterable[int]) -> Iterator[List[int]]:
        """
        独占持有一组食材的锁，直到退出上下文

        Raises:
            ConcurrencyError: 在 timeout 秒内没有拿到全部锁时
        """
        ordered = sorted(set(ingredient_ids))
        acquired: List[threading.Lock] = []
        try:
            for ingredient_id in ordered:
                lock = self._lock_for(ingredient_id)
                if not lock.acquire(timeout=self.timeout):
                    logger.warning("Timed out waiting for stock lock of ingredient %s", ingredient_id)
                    raise ConcurrencyError(
                        "食材库存正被其他操作占用，请稍后重试",
                        details={"ingredient_id": ingredient_id},
                    )
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()


# 全局锁表实例
stock_locks = StockLockRegistry()
