"""
镜像表对账

前置条件: 远端结果是本次同步唯一可信的数据集。配置了服务端过滤条件时，
被过滤掉的记录与已删除记录无法区分，会从镜像表中删除；远端返回空集时
镜像表会被清空。
"""
from typing import Any, Dict, Iterable, List, Sequence, Set

from loguru import logger

from ..db.store import TableStore
from .models import RECORD_ID, ReconcilePlan, SyncResult


class MirrorReconciler:
    """计算并执行 upsert/delete，使镜像表与远端一致"""

    def __init__(self, table: str, key: str = RECORD_ID):
        self.table = table
        self.key = key

    def plan(self, remote_rows: Iterable[Dict[str, Any]], mirror_ids: Iterable[str]) -> ReconcilePlan:
        """纯计算: 删除集 = 镜像 id - 远端 id，upsert 集 = 全部远端行"""
        unique: Dict[str, Dict[str, Any]] = {}
        for row in remote_rows:
            # 分页期间源表被修改可能导致重复，同一 key 只保留最后一次
            unique[row[self.key]] = row

        delete_ids: Set[str] = set(mirror_ids) - set(unique)
        return ReconcilePlan(upsert_rows=list(unique.values()), delete_ids=delete_ids)

    def fetch_mirror_ids(self, store: TableStore) -> Set[str]:
        rows = store.select(self.table, [self.key])
        return {row[self.key] for row in rows}

    def reconcile(self, remote_rows: Sequence[Dict[str, Any]], store: TableStore) -> SyncResult:
        """执行对账。删除集与 upsert 集互不相交，执行顺序不影响最终状态"""
        mirror_ids = self.fetch_mirror_ids(store)
        plan = self.plan(remote_rows, mirror_ids)

        if plan.is_full_wipe:
            logger.warning(f"Remote returned no rows; deleting all {len(plan.delete_ids)} "
                           f"rows from {self.table}")

        if plan.delete_ids:
            logger.info(f"Deleting {len(plan.delete_ids)} stale rows from {self.table}")
            store.delete(self.table, plan.delete_ids, self.key)

        if plan.upsert_rows:
            logger.info(f"Upserting {len(plan.upsert_rows)} rows into {self.table}")
            store.upsert(self.table, plan.upsert_rows, self.key)

        return SyncResult(synced=len(plan.upsert_rows), deleted=len(plan.delete_ids))
