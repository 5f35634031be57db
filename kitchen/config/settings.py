from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # 数据库配置
    database_url: str = "duckdb://./data/kitchen.duckdb"

    # API配置
    api_title: str = "厨房库存 API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: List[str] = ["*"]

    # 业务配置
    preparations_page_limit: int = 200  # 制作记录列表默认上限
    stock_lock_timeout: float = 10.0  # 等待食材库存锁的秒数
    max_preparation_quantity: int = 10000  # 单次制作份数上限

    # 开发模式
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="KITCHEN_",
        case_sensitive=False,
        extra="ignore",
    )


# 全局设置实例
settings = Settings()
