"""
日志配置
应用日志统一挂在 "kitchen" 记录器下
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """安装控制台日志处理器，重复调用只会调整级别"""
    root = logging.getLogger("kitchen")
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    return root
