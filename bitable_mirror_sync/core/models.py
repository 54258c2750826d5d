"""
同步数据模型
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

# 镜像表的固定列（顺序即建表顺序）
CANONICAL_COLUMNS = (
    "record_id",
    "name",
    "description",
    "image",
    "type",
    "group",
    "docType",
    "khuVuc",
    "time",
    "timeRaw",
    "isPinned",
    "latitude",
    "longitude",
    "status",
    "email",
    "lienHe",
    "linkFacebook",
    "_name",
    "_group",
    "_docType",
    "_khuVuc",
)

# 影子字段 -> 来源展示字段
SHADOW_COLUMNS = {
    "_name": "name",
    "_group": "group",
    "_docType": "docType",
    "_khuVuc": "khuVuc",
}

RECORD_ID = "record_id"


@dataclass(frozen=True)
class RemoteRecord:
    """多维表格中的一条记录，仅在一次同步中存活"""
    record_id: str
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SyncResult:
    """一次同步的结果"""
    synced: int = 0
    deleted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"synced": self.synced, "deleted": self.deleted}


@dataclass
class ReconcilePlan:
    """对账计划: 需要 upsert 的行 + 需要删除的 id，两者互不相交"""
    upsert_rows: List[Dict[str, Any]]
    delete_ids: Set[str]

    @property
    def is_full_wipe(self) -> bool:
        return not self.upsert_rows and bool(self.delete_ids)
