"""
日志配置

本地运行时输出彩色文本；在 Vercel 等无服务器平台上设置 LOG_JSON=true，
标准输出改为每行一个 JSON 对象，文件日志只在配置了 LOG_FILE 时启用。
"""
import sys
from pathlib import Path
from loguru import logger

from ..config.config import MonitorConfig

SERVICE_NAME = "bitable_mirror_sync"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[service]}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logger(config: MonitorConfig) -> None:
    """配置日志"""
    logger.remove()
    logger.configure(extra={"service": SERVICE_NAME})

    if config.log_json:
        # 平台日志采集按行解析 JSON
        logger.add(sys.stdout, level=config.log_level, serialize=True)
    else:
        logger.add(
            sys.stdout,
            level=config.log_level,
            format=CONSOLE_FORMAT,
            colorize=sys.stdout.isatty(),
        )

    if config.log_file:
        logger.add(
            config.log_file,
            level=config.log_level,
            format=FILE_FORMAT,
            rotation=config.log_max_size,
            retention=config.log_backup_count,
            compression="zip",
            encoding="utf-8"
        )

        # 单独保留失败的同步记录
        error_log_file = Path(config.log_file).with_suffix('.error.log')
        logger.add(
            str(error_log_file),
            level="ERROR",
            format=FILE_FORMAT,
            rotation=config.log_max_size,
            retention=config.log_backup_count * 2,
            compression="zip",
            encoding="utf-8"
        )

    logger.info(f"Logger initialized: level={config.log_level}, json={config.log_json}, "
                f"file={config.log_file or '-'}")
