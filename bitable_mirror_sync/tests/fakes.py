"""
测试用的内存镜像表
"""
from typing import Any, Dict, Iterable, List, Optional, Sequence

from bitable_mirror_sync.db.store import TableStore


class InMemoryTableStore(TableStore):
    """内存表存储，记录每次调用"""

    def __init__(self, rows: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        # {table: {key: row}}
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = rows or {}
        self.calls: List[tuple] = []

    def seed(self, table: str, ids: Iterable[str], key: str = "record_id") -> None:
        data = self.tables.setdefault(table, {})
        for record_id in ids:
            data[record_id] = {key: record_id, "name": f"old {record_id}"}

    def ids(self, table: str) -> set:
        return set(self.tables.get(table, {}))

    def select(self, table: str, columns: Sequence[str],
               limit: Optional[int] = None) -> List[Dict[str, Any]]:
        self.calls.append(("select", table))
        rows = list(self.tables.get(table, {}).values())
        if columns:
            rows = [{c: r.get(c) for c in columns} for r in rows]
        return rows if limit is None else rows[:limit]

    def upsert(self, table: str, rows: Sequence[Dict[str, Any]], key: str) -> None:
        self.calls.append(("upsert", table, len(rows)))
        data = self.tables.setdefault(table, {})
        for row in rows:
            data[row[key]] = dict(row)

    def delete(self, table: str, ids: Iterable[str], key: str) -> None:
        ids = set(ids)
        self.calls.append(("delete", table, len(ids)))
        data = self.tables.setdefault(table, {})
        for record_id in ids:
            data.pop(record_id, None)

    def test_connection(self) -> bool:
        return True
