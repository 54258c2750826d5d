#!/usr/bin/env python3
"""
多维表格 -> 镜像表 同步服务
主程序入口
"""
import sys
import signal
import threading
import argparse
from loguru import logger

from bitable_mirror_sync.config.config import Config
from bitable_mirror_sync.core.sync_service import SyncService
from bitable_mirror_sync.errors import SyncError
from bitable_mirror_sync.monitor.logger import setup_logger


class SyncApplication:
    """同步应用主类

    轮询模式下各次同步在同一线程内顺序执行，天然不会重叠。
    """

    def __init__(self, config_path: str = None):
        self.config_path = config_path
        self.config = None
        self.sync_service = None
        self._stop_event = threading.Event()

    def _signal_handler(self, signum, frame):
        """信号处理器"""
        logger.info(f"Received signal {signum}, shutting down...")
        self.stop()

    def initialize(self):
        """初始化应用"""
        self.config = Config(self.config_path)
        setup_logger(self.config.monitor)

        logger.info("=" * 60)
        logger.info("Bitable Mirror Sync Service")
        logger.info("=" * 60)
        logger.info(f"Config file: {self.config.config_path or '(environment only)'}")
        logger.info(f"Mirror table: {self.config.store.table} ({self.config.store.backend})")
        logger.info(f"Time zone: {self.config.sync.time_zone}, "
                    f"multi value policy: {self.config.sync.multi_value_policy}")
        if self.config.feishu.filter:
            logger.info(f"Remote filter: {self.config.feishu.filter} "
                        f"(records outside the filter are removed from the mirror)")

        self.sync_service = SyncService(self.config)
        logger.info("Application initialized successfully")

    def run_once(self) -> bool:
        """执行一次同步"""
        result = self.sync_service.trigger()
        if result['success']:
            logger.info(f"Synced {result['synced']}, deleted {result['deleted']}")
        else:
            logger.error(f"Sync failed: {result['error']}")
        return result['success']

    def start(self):
        """按 poll_interval 循环同步"""
        if not self.sync_service:
            raise RuntimeError("Application not initialized")

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        interval = self.config.sync.poll_interval
        logger.info(f"Application started, syncing every {interval}s, press Ctrl+C to stop")

        try:
            while not self._stop_event.is_set():
                self.run_once()
                self._stop_event.wait(interval)
        finally:
            self.sync_service.close()
            logger.info("Application stopped")

    def stop(self):
        """停止应用"""
        self._stop_event.set()


def main():
    """主函数"""
    parser = argparse.ArgumentParser(
        description='Bitable -> mirror table one-way sync service'
    )
    parser.add_argument(
        '-c', '--config',
        help='Path to configuration file',
        default=None
    )
    parser.add_argument(
        '--init',
        action='store_true',
        help='Write a configuration template and exit'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single sync pass and exit'
    )
    parser.add_argument(
        '--test',
        action='store_true',
        help='Test connections and exit'
    )
    parser.add_argument(
        '--serve',
        action='store_true',
        help='Serve the HTTP trigger API'
    )
    parser.add_argument('--host', default='0.0.0.0')
    parser.add_argument('--port', type=int, default=8080)

    args = parser.parse_args()

    if args.init:
        config = Config(args.config, env={})
        path = config.save(args.config)
        print(f"Configuration file created: {path}")
        print("Please edit the configuration file and run the service again")
        return

    if args.serve:
        import uvicorn
        from bitable_mirror_sync.api.app import create_app
        from bitable_mirror_sync.core.sync_service import create_service

        config = Config(args.config)
        setup_logger(config.monitor)
        uvicorn.run(create_app(lambda: create_service(config)), host=args.host, port=args.port)
        return

    app = SyncApplication(args.config)
    try:
        app.initialize()
    except SyncError as e:
        logger.error(f"Failed to initialize application: {e}")
        sys.exit(1)

    if args.test:
        logger.info("Testing connections...")
        sys.exit(0 if app.sync_service.test_connections() else 1)

    if args.once:
        ok = app.run_once()
        app.sync_service.close()
        sys.exit(0 if ok else 1)

    app.start()


if __name__ == '__main__':
    main()
