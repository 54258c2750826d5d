"""
同步服务主类

单向同步: 多维表格 -> 镜像表。每次调用完整执行 拉取 -> 映射 -> 对账，
任何一步失败都会终止本次同步，不做自动重试（由调度方负责重跑）。

调度方必须保证同一时间只有一次同步在运行；本服务只在进程内拒绝重入，
不协调多个进程。
"""
import threading
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from ..config.config import Config
from ..db.store import TableStore
from ..errors import ConfigError, SyncError, SyncInProgressError
from ..feishu.reader import BitableReader
from ..feishu.token_cache import TokenCache, build_token_cache
from ..monitor.metrics import MetricsCollector
from .models import SyncResult
from .reconciler import MirrorReconciler
from .record_mapper import RecordMapper

# 调试接口中需要分析类型的列
DEBUG_COLUMNS = ("group", "docType", "khuVuc", "image", "time", "timeRaw")


def build_store(config: Config) -> TableStore:
    """根据配置创建存储后端"""
    if config.store.backend == "mysql":
        from ..db.database import MySQLTableStore
        store = MySQLTableStore(config.store)
        store.create_mirror_table(config.store.table)
        return store

    from ..db.rest_store import RestTableStore
    return RestTableStore(
        config.store.url,
        config.store.service_key,
        batch_size=config.store.batch_size,
        timeout=config.store.timeout,
    )


class SyncService:
    """多维表格 -> 镜像表 同步服务"""

    def __init__(self, config: Config,
                 reader: Optional[BitableReader] = None,
                 store: Optional[TableStore] = None,
                 mapper: Optional[RecordMapper] = None,
                 reconciler: Optional[MirrorReconciler] = None,
                 metrics: Optional[MetricsCollector] = None,
                 token_cache: Optional[TokenCache] = None):
        self.config = config
        self._run_lock = threading.Lock()

        self.stats: Dict[str, Any] = {
            'last_result': None,
            'last_error': None,
            'last_run_at': None,
            'runs': 0,
        }

        self._init_components(reader, store, mapper, reconciler, metrics, token_cache)

    def _init_components(self, reader, store, mapper, reconciler, metrics, token_cache) -> None:
        """初始化组件，未注入的组件按配置创建"""
        self.config.validate()

        if reader is None:
            feishu = self.config.feishu
            reader = BitableReader(
                feishu.app_id,
                feishu.app_secret,
                feishu.app_token,
                feishu.table_id,
                domain=feishu.domain,
                token_cache=token_cache or build_token_cache(self.config.redis.url),
                page_size=feishu.page_size,
                safety_margin=self.config.sync.token_safety_margin,
                timeout=feishu.timeout,
            )
        self.reader = reader

        self.store = store or build_store(self.config)
        self.mapper = mapper or RecordMapper(
            self.config.sync.multi_value_policy,
            self.config.sync.time_zone,
        )
        self.reconciler = reconciler or MirrorReconciler(self.config.store.table)

        if metrics is None and self.config.monitor.enable_metrics:
            metrics = MetricsCollector(self.config.monitor)
        self.metrics = metrics

        logger.info("All components initialized successfully")

    def run_sync(self) -> SyncResult:
        """执行一次完整同步，失败时抛出 SyncError 子类"""
        if not self._run_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync pass is already running in this process")

        started = time.monotonic()
        self.stats['last_run_at'] = datetime.now().isoformat()
        self.stats['runs'] += 1
        try:
            logger.info("Starting Bitable -> mirror sync")

            records = self.reader.fetch_all(self.config.feishu.filter)
            rows = self.mapper.map_records(records)
            result = self.reconciler.reconcile(rows, self.store)

            duration = time.monotonic() - started
            logger.info(f"Sync complete: {result.synced} upserted, {result.deleted} deleted "
                        f"in {duration:.2f}s")

            self.stats['last_result'] = result.to_dict()
            self.stats['last_error'] = None
            if self.metrics:
                self.metrics.record_pass(result, duration)
            return result

        except SyncError as e:
            logger.error(f"Sync failed ({type(e).__name__}): {e}")
            self.stats['last_error'] = str(e)
            if self.metrics:
                self.metrics.record_error(type(e).__name__, str(e))
            raise
        except Exception as e:
            logger.exception(f"Sync failed with unexpected error: {e}")
            self.stats['last_error'] = str(e)
            if self.metrics:
                self.metrics.record_error(type(e).__name__, str(e))
            raise SyncError(f"Unexpected {type(e).__name__}: {e}") from e
        finally:
            self._run_lock.release()

    def trigger(self) -> Dict[str, Any]:
        """执行同步并返回结构化结果，SyncError 不会向外抛出"""
        try:
            result = self.run_sync()
        except SyncError as e:
            return {'success': False, 'error': str(e)}

        return {
            'success': True,
            'message': 'Sync complete.',
            **result.to_dict(),
        }

    def sample_rows(self, limit: int = 5) -> Dict[str, Any]:
        """取镜像表前几行并分析各列的实际类型，用于排查映射问题"""
        rows = self.store.select(self.config.store.table, [], limit=limit)

        analysis: List[Dict[str, Any]] = []
        for row in rows:
            item = {'record_id': row.get('record_id'), 'name': row.get('name')}
            for column in DEBUG_COLUMNS:
                value = row.get(column)
                item[column] = {
                    'value': value,
                    'type': type(value).__name__,
                    'is_array': isinstance(value, list),
                }
            analysis.append(item)

        return {
            'success': True,
            'count': len(rows),
            'raw_data': rows,
            'analysis': analysis,
        }

    def test_connections(self) -> bool:
        """测试连接"""
        if not self.reader.test_connection():
            logger.error("Lark connection test failed")
            return False

        if not self.store.test_connection():
            logger.error("Mirror store connection test failed")
            return False

        logger.info("All connections tested successfully")
        return True

    def get_status(self) -> Dict[str, Any]:
        """获取服务状态"""
        status = {
            'running': self._run_lock.locked(),
            'table': self.config.store.table,
            'sync_stats': dict(self.stats),
        }
        if self.metrics:
            status['metrics'] = self.metrics.get_metrics()
        return status

    def close(self) -> None:
        self.store.close()


def create_service(config: Optional[Config] = None, **components) -> SyncService:
    """按配置创建服务；配置缺失时抛出 ConfigError"""
    config = config or Config()
    try:
        return SyncService(config, **components)
    except ConfigError:
        logger.error("Invalid configuration, sync service not started")
        raise
