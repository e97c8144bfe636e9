"""
主程序入口

初始化日志和数据库，启动 REST API 服务。
服务内没有后台任务：在线状态在每次查询时根据数据时间计算。
"""

import logging
import sys
from pathlib import Path

import uvicorn

from . import __version__
from .config import get_config
from .database import Database


def setup_logging():
    """配置日志"""
    config = get_config()

    # 日志格式
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 获取日志级别
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    # 配置根日志
    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main():
    """主函数：初始化数据库并启动 API 服务"""
    from .api.app import create_app

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info(f"Fleet Monitor v{__version__}")
    logger.info("=" * 60)

    # 加载配置
    config = get_config()
    logger.info(f"Config loaded: API={config.api.host}:{config.api.port}")
    logger.info(f"Database: {config.database.path}")

    # 建表和健康检查在应用 startup 事件中完成，失败则启动中止
    db = Database(config.database.path, timeout=config.database.timeout)
    app = create_app(config=config, db=db)
    uvicorn.run(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level=config.logging.level.lower(),
        access_log=False  # 我们用自己的日志
    )


def cli():
    """命令行入口"""
    try:
        main()
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
