"""
餐品制作服务测试
覆盖原子性、守恒、非负、成本正确性和并发竞争
"""

import threading
from datetime import date
from decimal import Decimal

import duckdb
import pytest

from kitchen.core.exceptions import (
    ConcurrencyError,
    InsufficientStockError,
    MealNotFoundError,
    StorageError,
    ValidationError,
)
from kitchen.core.locks import StockLockRegistry
from kitchen.models import BudgetPeriodCreate, IngredientCreate, MealCreate, RecipeLineInput
from kitchen.services import PreparationService
from kitchen.services.preparation_service import coerce_quantity


def _meal(meal_service, name, lines):
    return meal_service.create_meal(MealCreate(
        name=name,
        ingredients=[RecipeLineInput(ingredient_id=i, quantity=Decimal(q)) for i, q in lines],
    ))


class TestPrepare:
    """制作流程测试"""

    def test_prepare_deducts_stock_and_records_cost(self, preparation_service, ingredient_service, jollof, rice):
        """测试大米 10kg，每份 3kg，做2份后剩 4kg"""
        result = preparation_service.prepare(jollof.id, 2)

        assert ingredient_service.get_ingredient(rice.id).current_stock == Decimal("4")
        assert result.total_cost == Decimal("7.50")
        assert result.preparation.meal_id == jollof.id
        assert result.preparation.quantity_prepared == 2
        assert result.preparation.total_cost == Decimal("7.50")
        assert len(result.deducted) == 1
        assert result.deducted[0].ingredient_id == rice.id
        assert result.deducted[0].quantity_deducted == Decimal("6")
        assert result.deducted[0].unit == "kg"

    def test_insufficient_stock_changes_nothing(self, preparation_service, ingredient_service, jollof, rice):
        """测试需要 12kg 但只有 10kg 时失败且库存不变"""
        with pytest.raises(InsufficientStockError) as exc_info:
            preparation_service.prepare(jollof.id, 4)

        shortfall = exc_info.value.shortfalls[0]
        assert exc_info.value.error_code == "INSUFFICIENT_STOCK"
        assert shortfall["ingredient_id"] == rice.id
        assert shortfall["needed"] == Decimal("12")
        assert shortfall["available"] == Decimal("10")
        assert shortfall["unit"] == "kg"

        assert ingredient_service.get_ingredient(rice.id).current_stock == Decimal("10")
        assert preparation_service.list_preparations() == []

    def test_shortfall_in_one_ingredient_blocks_all_deductions(
            self, preparation_service, stock_levels, meal_service, rice, tomato):
        """测试一种食材不足时其它食材也不扣减"""
        stew = _meal(meal_service, "Stew", [(rice.id, "1"), (tomato.id, "15")])
        before = stock_levels()

        with pytest.raises(InsufficientStockError) as exc_info:
            preparation_service.prepare(stew.id, 2)

        assert [s["ingredient_id"] for s in exc_info.value.shortfalls] == [tomato.id]
        assert stock_levels() == before

    def test_all_shortfalls_are_reported(self, preparation_service, meal_service, rice, tomato):
        """测试多种食材不足时全部列出"""
        feast = _meal(meal_service, "Feast", [(rice.id, "6"), (tomato.id, "11")])

        with pytest.raises(InsufficientStockError) as exc_info:
            preparation_service.prepare(feast.id, 2)

        assert {s["ingredient_id"] for s in exc_info.value.shortfalls} == {rice.id, tomato.id}

    def test_conservation_for_multiple_lines(self, preparation_service, stock_levels, meal_service, rice, tomato):
        """测试扣减后库存 = 原库存 - 每份用量 * 份数"""
        stew = _meal(meal_service, "Stew", [(rice.id, "0.75"), (tomato.id, "2.5")])
        before = stock_levels()

        preparation_service.prepare(stew.id, 3)

        after = stock_levels()
        assert after[rice.id] == before[rice.id] - Decimal("0.75") * 3
        assert after[tomato.id] == before[tomato.id] - Decimal("2.5") * 3

    def test_exact_stock_can_be_consumed(self, preparation_service, ingredient_service, meal_service, rice):
        """测试恰好用完库存是允许的"""
        bowl = _meal(meal_service, "Bowl", [(rice.id, "5")])

        preparation_service.prepare(bowl.id, 2)

        assert ingredient_service.get_ingredient(rice.id).current_stock == Decimal("0")

    def test_repeated_preparations_never_go_negative(self, preparation_service, ingredient_service, jollof, rice):
        """测试连续制作直到库存不足，库存始终非负"""
        successes = 0
        for _ in range(10):
            try:
                preparation_service.prepare(jollof.id, 1)
                successes += 1
            except InsufficientStockError:
                pass

        assert successes == 3
        assert ingredient_service.get_ingredient(rice.id).current_stock == Decimal("1")

    def test_cost_uses_decimal_arithmetic(self, preparation_service, ingredient_service, meal_service, units):
        """测试很多小额单价累加不会产生浮点误差"""
        spice = ingredient_service.create_ingredient(IngredientCreate(
            name="Spice", unit_id=units["g"], cost_per_unit=Decimal("0.1"),
            current_stock=Decimal("1000"),
        ))
        salt = ingredient_service.create_ingredient(IngredientCreate(
            name="Salt", unit_id=units["g"], cost_per_unit=Decimal("0.0033"),
            current_stock=Decimal("1000"),
        ))
        dish = _meal(meal_service, "Dish", [(spice.id, "0.3"), (salt.id, "1.5")])

        result = preparation_service.prepare(dish.id, 7)

        # 0.3*7*0.1 + 1.5*7*0.0033 = 0.21 + 0.03465 = 0.24465 -> 0.24
        assert result.total_cost == Decimal("0.24")

    def test_cost_rounds_half_up(self, preparation_service, ingredient_service, meal_service, units):
        """测试总成本四舍五入到两位小数"""
        oil = ingredient_service.create_ingredient(IngredientCreate(
            name="Oil", unit_id=units["ml"], cost_per_unit=Decimal("0.0125"),
            current_stock=Decimal("100"),
        ))
        dish = _meal(meal_service, "Fried", [(oil.id, "1")])

        assert preparation_service.prepare(dish.id, 1).total_cost == Decimal("0.01")
        assert preparation_service.prepare(dish.id, 2).total_cost == Decimal("0.03")

    def test_cost_reflects_current_unit_cost(self, preparation_service, ingredient_service, jollof, rice):
        """测试成本按制作时的食材单价计算"""
        from kitchen.models import IngredientUpdate
        ingredient_service.update_ingredient(rice.id, IngredientUpdate(cost_per_unit=Decimal("2")))

        assert preparation_service.prepare(jollof.id, 1).total_cost == Decimal("6.00")


class TestPrepareEdgeCases:
    """边界情况测试"""

    def test_unknown_meal(self, preparation_service):
        with pytest.raises(MealNotFoundError):
            preparation_service.prepare(999, 1)

    def test_meal_without_lines_is_rejected(self, preparation_service, meal_service):
        """测试没有配方的餐品无法制作"""
        empty = meal_service.create_meal(MealCreate(name="Air"))

        with pytest.raises(MealNotFoundError):
            preparation_service.prepare(empty.id, 1)
        assert preparation_service.list_preparations() == []

    @pytest.mark.parametrize("raw, expected", [
        (None, 1), (0, 1), (-3, 1), ("abc", 1), ("", 1), (True, 1),
        (2, 2), ("3", 3), (2.7, 2), ("2.5", 2), (float("nan"), 1),
    ])
    def test_coerce_quantity(self, raw, expected):
        assert coerce_quantity(raw) == expected

    @pytest.mark.parametrize("raw", [10001, 3_000_000_000, "1e999999999", float("inf")])
    def test_coerce_quantity_rejects_values_above_limit(self, raw):
        with pytest.raises(ValidationError):
            coerce_quantity(raw, limit=10000)

    def test_coerce_quantity_limit_is_inclusive(self):
        assert coerce_quantity("10000", limit=10000) == 10000
        with pytest.raises(ValidationError):
            coerce_quantity(6, limit=5)

    def test_oversized_quantity_changes_nothing(self, preparation_service, stock_levels, jollof):
        """测试份数超出上限时报校验错误而不是存储错误"""
        before = stock_levels()

        with pytest.raises(ValidationError) as exc_info:
            preparation_service.prepare(jollof.id, 3_000_000_000)

        assert exc_info.value.error_code == "VALIDATION_ERROR"
        assert stock_levels() == before
        assert preparation_service.list_preparations() == []

    def test_line_for_missing_ingredient_blocks_preparation(self, test_db, preparation_service, stock_levels,
                                                            meal_service, rice, tomato):
        """测试配方行引用的食材已不存在时整体失败，不会跳过该行少算成本"""
        stew = _meal(meal_service, "Stew", [(rice.id, "1"), (tomato.id, "2")])
        with test_db.transaction() as conn:
            conn.execute("DELETE FROM ingredients WHERE id = ?", [tomato.id])
        before = stock_levels()

        with pytest.raises(ValidationError) as exc_info:
            preparation_service.prepare(stew.id, 1)

        assert exc_info.value.details["ingredient_ids"] == [tomato.id]
        assert stock_levels() == before
        assert preparation_service.list_preparations() == []

    def test_quantity_below_one_is_clamped(self, preparation_service, ingredient_service, jollof, rice):
        """测试份数为0时按1份处理"""
        result = preparation_service.prepare(jollof.id, 0)

        assert result.preparation.quantity_prepared == 1
        assert ingredient_service.get_ingredient(rice.id).current_stock == Decimal("7")

    def test_storage_failure_rolls_back_everything(self, test_db, stock_lock_registry, ingredient_service,
                                                   jollof, rice, monkeypatch):
        """测试写入制作记录失败时库存扣减也被回滚"""
        service = PreparationService(test_db, locks=stock_lock_registry)

        def broken_insert(*args, **kwargs):
            raise duckdb.IOException("disk full")

        monkeypatch.setattr(service, "_insert_preparation", broken_insert)

        with pytest.raises(StorageError):
            service.prepare(jollof.id, 1)

        assert ingredient_service.get_ingredient(rice.id).current_stock == Decimal("10")
        assert service.list_preparations() == []


class TestPreparationHistory:
    """制作记录测试"""

    def test_list_is_most_recent_first(self, preparation_service, jollof):
        first = preparation_service.prepare(jollof.id, 1).preparation
        second = preparation_service.prepare(jollof.id, 1).preparation

        records = preparation_service.list_preparations()

        assert [r.id for r in records] == [second.id, first.id]
        assert records[0].meal_name == "Jollof"

    def test_list_respects_limit(self, preparation_service, jollof):
        for _ in range(3):
            preparation_service.prepare(jollof.id, 1)

        assert len(preparation_service.list_preparations(limit=2)) == 2

    def test_preparation_is_logged(self, preparation_service, log_service, jollof):
        preparation_service.prepare(jollof.id, 2)

        logs = log_service.list_logs(action="meal_prepare")
        assert logs["total"] == 1
        assert logs["logs"][0]["detail"]["quantity"] == 2


class TestConcurrency:
    """并发制作测试"""

    def test_racing_preparations_on_shared_ingredient(self, test_db, stock_lock_registry, ingredient_service,
                                                      meal_service, rice, tomato):
        """测试两个单独可行、合起来超出库存的制作只有一个成功"""
        meal_a = _meal(meal_service, "A", [(rice.id, "6")])
        meal_b = _meal(meal_service, "B", [(rice.id, "6"), (tomato.id, "1")])
        barrier = threading.Barrier(2)
        results = {}

        def worker(name, meal_id):
            service = PreparationService(test_db, locks=stock_lock_registry)
            barrier.wait()
            try:
                service.prepare(meal_id, 1)
                results[name] = "ok"
            except InsufficientStockError:
                results[name] = "insufficient"

        threads = [
            threading.Thread(target=worker, args=("a", meal_a.id)),
            threading.Thread(target=worker, args=("b", meal_b.id)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert sorted(results.values()) == ["insufficient", "ok"]
        assert ingredient_service.get_ingredient(rice.id).current_stock == Decimal("4")

    def test_many_concurrent_preparations_stay_non_negative(self, test_db, stock_lock_registry,
                                                            ingredient_service, jollof, rice):
        """测试多线程同时制作，成功次数与剩余库存一致"""
        outcomes = []
        lock = threading.Lock()

        def worker():
            service = PreparationService(test_db, locks=stock_lock_registry)
            try:
                service.prepare(jollof.id, 1)
                outcome = "ok"
            except InsufficientStockError:
                outcome = "insufficient"
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert outcomes.count("ok") == 3
        assert outcomes.count("insufficient") == 5
        assert ingredient_service.get_ingredient(rice.id).current_stock == Decimal("1")

    def test_disjoint_ingredients_are_not_blocked(self, test_db, meal_service, rice, tomato):
        """测试持有大米的锁时，只用番茄的制作不受影响，用大米的制作等待超时"""
        locks = StockLockRegistry(timeout=0.2)
        service = PreparationService(test_db, locks=locks)
        salad = _meal(meal_service, "Salad", [(tomato.id, "2")])
        bowl = _meal(meal_service, "Bowl", [(rice.id, "1")])

        with locks.hold([rice.id]):
            done = {}
            thread = threading.Thread(target=lambda: done.setdefault("result", service.prepare(salad.id, 1)))
            thread.start()
            thread.join(timeout=5)
            assert "result" in done

            blocked = {}

            def prepare_bowl():
                try:
                    service.prepare(bowl.id, 1)
                except ConcurrencyError as e:
                    blocked["error"] = e

            thread = threading.Thread(target=prepare_bowl)
            thread.start()
            thread.join(timeout=5)
            assert isinstance(blocked.get("error"), ConcurrencyError)

    def test_reads_never_see_partial_deduction(self, test_db, stock_lock_registry, meal_service, alert_service,
                                               budget_service, stock_levels, rice, tomato, monkeypatch):
        """测试制作事务进行到一半时，其它线程读到的库存、告警和预算都是扣减前的"""
        stew = _meal(meal_service, "Stew", [(rice.id, "3"), (tomato.id, "4")])
        budget_service.add_period(BudgetPeriodCreate(
            period_start=date.today(), period_end=date.today(), budget_amount=Decimal("100"),
        ))
        service = PreparationService(test_db, locks=stock_lock_registry)
        deducted = threading.Event()
        release = threading.Event()
        insert = service._insert_preparation

        def paused_insert(*args, **kwargs):
            # 此时两种食材都已在事务内扣减，但尚未提交
            deducted.set()
            release.wait(timeout=5)
            return insert(*args, **kwargs)

        monkeypatch.setattr(service, "_insert_preparation", paused_insert)
        outcome = {}
        worker = threading.Thread(target=lambda: outcome.setdefault("result", service.prepare(stew.id, 3)))
        worker.start()
        try:
            assert deducted.wait(timeout=5)
            stock_during = stock_levels()
            alerts_during = alert_service.evaluate()
            usage_during = budget_service.usage()
            history_during = service.list_preparations()
        finally:
            release.set()
            worker.join(timeout=5)

        assert stock_during == {rice.id: Decimal("10"), tomato.id: Decimal("20")}
        assert alerts_during.low_stock == []
        assert usage_during.spent == Decimal("0")
        assert history_during == []

        # 3*3*1.25 + 4*3*0.35 = 11.25 + 4.20
        assert outcome["result"].total_cost == Decimal("15.45")
        assert stock_levels() == {rice.id: Decimal("1"), tomato.id: Decimal("8")}
        assert [a.id for a in alert_service.evaluate().low_stock] == [rice.id]
        assert budget_service.usage().spent == Decimal("15.45")
