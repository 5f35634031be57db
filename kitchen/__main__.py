"""
本地启动入口: python -m kitchen
"""

import uvicorn

from .config.settings import settings


def main():
    uvicorn.run("kitchen.app:app", host=settings.host, port=settings.port, reload=settings.debug)


if __name__ == "__main__":
    main()
