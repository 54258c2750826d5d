"""
镜像表持久化接口
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """按 size 切分批次"""
    size = max(1, size)
    for start in range(0, len(items), size):
        yield items[start:start + size]


class TableStore(ABC):
    """镜像表存储接口

    upsert 语义为整行替换: 主键冲突时用新行的全部列覆盖旧行。
    """

    @abstractmethod
    def select(self, table: str, columns: Sequence[str],
               limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """查询指定列；limit 为 None 时返回全部行"""
        pass

    @abstractmethod
    def upsert(self, table: str, rows: Sequence[Dict[str, Any]], key: str) -> None:
        """插入或整行替换"""
        pass

    @abstractmethod
    def delete(self, table: str, ids: Iterable[str], key: str) -> None:
        """删除 key 在 ids 中的行"""
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """测试连接"""
        pass

    def close(self) -> None:
        """释放连接资源"""
