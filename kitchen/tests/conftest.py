"""
测试配置文件
提供测试所需的fixtures和配置
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from kitchen.api.deps import get_db
from kitchen.app import create_app
from kitchen.core.database import DatabaseManager
from kitchen.core.locks import StockLockRegistry
from kitchen.models import IngredientCreate, MealCreate, RecipeLineInput
from kitchen.services import (
    AlertService,
    BudgetService,
    IngredientService,
    LogService,
    MealService,
    PreparationService,
    UnitService,
)


@pytest.fixture
def test_db():
    """内存测试数据库"""
    db = DatabaseManager(db_path=":memory:")
    db.init_database()
    yield db
    db.close()


@pytest.fixture
def stock_lock_registry():
    """独立的库存锁表，避免测试之间互相影响"""
    return StockLockRegistry(timeout=5)


@pytest.fixture
def unit_service(test_db):
    return UnitService(test_db)


@pytest.fixture
def ingredient_service(test_db, stock_lock_registry):
    return IngredientService(test_db, locks=stock_lock_registry)


@pytest.fixture
def meal_service(test_db, stock_lock_registry):
    return MealService(test_db, locks=stock_lock_registry)


@pytest.fixture
def preparation_service(test_db, stock_lock_registry):
    return PreparationService(test_db, locks=stock_lock_registry)


@pytest.fixture
def budget_service(test_db):
    return BudgetService(test_db)


@pytest.fixture
def alert_service(test_db):
    return AlertService(test_db)


@pytest.fixture
def log_service(test_db):
    return LogService(test_db)


@pytest.fixture
def units(unit_service):
    """默认计量单位 {名称: ID}"""
    return {unit.name: unit.id for unit in unit_service.list_units()}


@pytest.fixture
def rice(ingredient_service, units):
    """示例食材：大米 10kg，最低2kg，单价 1.25"""
    return ingredient_service.create_ingredient(IngredientCreate(
        name="Rice",
        unit_id=units["kg"],
        cost_per_unit=Decimal("1.25"),
        min_stock=Decimal("2"),
        current_stock=Decimal("10"),
    ))


@pytest.fixture
def tomato(ingredient_service, units):
    """示例食材：番茄 20个"""
    return ingredient_service.create_ingredient(IngredientCreate(
        name="Tomato",
        unit_id=units["pcs"],
        cost_per_unit=Decimal("0.35"),
        min_stock=Decimal("5"),
        max_stock=Decimal("40"),
        current_stock=Decimal("20"),
    ))


@pytest.fixture
def jollof(meal_service, rice):
    """示例餐品：每份需要 3kg 大米"""
    return meal_service.create_meal(MealCreate(
        name="Jollof",
        description="Jollof rice",
        ingredients=[RecipeLineInput(ingredient_id=rice.id, quantity=Decimal("3"))],
    ))


@pytest.fixture
def app_instance(test_db):
    """测试应用，数据库替换为内存库"""
    app = create_app()
    app.dependency_overrides[get_db] = lambda: test_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_instance):
    """测试客户端（不触发 lifespan，避免打开默认数据库文件）"""
    return TestClient(app_instance)


@pytest.fixture
def stock_levels(test_db):
    """在一个快照中读取全部食材库存 {ingredient_id: current_stock}"""
    def read():
        with test_db.snapshot() as conn:
            return dict(conn.execute("SELECT id, current_stock FROM ingredients").fetchall())
    return read
