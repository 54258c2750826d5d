"""
MySQL 镜像表存储
"""
from typing import Dict, List, Any, Optional, Iterable, Sequence, Tuple
from contextlib import contextmanager

import pymysql
from pymysql.cursors import DictCursor
from dbutils.pooled_db import PooledDB
from loguru import logger

from ..config.config import StoreConfig
from ..errors import PersistenceError
from .store import TableStore, chunked


def quote(identifier: str) -> str:
    """反引号转义列名/表名（group 是保留字）"""
    return "`" + identifier.replace("`", "``") + "`"


MIRROR_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS {table} (
        `record_id` VARCHAR(64) NOT NULL PRIMARY KEY,
        `name` TEXT,
        `description` TEXT,
        `image` TEXT,
        `type` VARCHAR(16) NOT NULL DEFAULT 'found',
        `group` VARCHAR(255),
        `docType` VARCHAR(255),
        `khuVuc` VARCHAR(255),
        `time` VARCHAR(10),
        `timeRaw` BIGINT,
        `isPinned` TINYINT(1) NOT NULL DEFAULT 0,
        `latitude` DOUBLE,
        `longitude` DOUBLE,
        `status` VARCHAR(64),
        `email` VARCHAR(255),
        `lienHe` VARCHAR(255),
        `linkFacebook` TEXT,
        `_name` TEXT,
        `_group` VARCHAR(255),
        `_docType` VARCHAR(255),
        `_khuVuc` VARCHAR(255),
        INDEX idx_time_raw (`timeRaw`)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
"""


class MySQLTableStore(TableStore):
    """MySQL 表存储"""

    def __init__(self, config: StoreConfig, pool: Optional[PooledDB] = None):
        self.config = config
        self.batch_size = config.batch_size
        self._pool = pool
        if self._pool is None:
            self._init_pool()

    def _init_pool(self) -> None:
        """初始化连接池"""
        try:
            self._pool = PooledDB(
                creator=pymysql,
                maxconnections=self.config.pool_size,
                mincached=1,
                maxcached=self.config.pool_size,
                blocking=True,
                host=self.config.mysql_host,
                port=self.config.mysql_port,
                user=self.config.mysql_user,
                password=self.config.mysql_password,
                database=self.config.mysql_database,
                charset=self.config.mysql_charset,
                cursorclass=DictCursor
            )
            logger.info(f"Database connection pool initialized: "
                        f"{self.config.mysql_host}:{self.config.mysql_port}")
        except pymysql.MySQLError as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise PersistenceError(f"Failed to connect to MySQL: {e}") from e

    @contextmanager
    def get_connection(self):
        """获取数据库连接（上下文管理器），驱动异常统一转换为 PersistenceError"""
        conn = None
        try:
            conn = self._pool.connection()
            yield conn
        except pymysql.MySQLError as e:
            if conn:
                conn.rollback()
            logger.error(f"Database operation error: {e}")
            raise PersistenceError(f"MySQL error: {e}") from e
        finally:
            if conn:
                conn.close()

    def execute_many(self, sql: str, params_list: List[Tuple]) -> int:
        """批量执行SQL语句（单个事务）"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                result = cursor.executemany(sql, params_list)
                conn.commit()
                return result
            finally:
                cursor.close()

    def query(self, sql: str, params: Optional[Tuple] = None) -> List[Dict[str, Any]]:
        """查询数据"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(sql, params)
                return list(cursor.fetchall())
            finally:
                cursor.close()

    def select(self, table: str, columns: Sequence[str],
               limit: Optional[int] = None) -> List[Dict[str, Any]]:
        cols = ", ".join(quote(c) for c in columns) if columns else "*"
        sql = f"SELECT {cols} FROM {quote(table)}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return self.query(sql)

    def upsert(self, table: str, rows: Sequence[Dict[str, Any]], key: str) -> None:
        """INSERT ... ON DUPLICATE KEY UPDATE，所有非主键列都被覆盖"""
        if not rows:
            return

        columns = list(rows[0].keys())
        placeholders = ", ".join(["%s"] * len(columns))
        update_clause = ", ".join(
            f"{quote(col)} = VALUES({quote(col)})" for col in columns if col != key
        )
        sql = (
            f"INSERT INTO {quote(table)} ({', '.join(quote(c) for c in columns)}) "
            f"VALUES ({placeholders}) "
            f"ON DUPLICATE KEY UPDATE {update_clause}"
        )

        for batch in chunked(list(rows), self.batch_size):
            values = [tuple(row.get(col) for col in columns) for row in batch]
            self.execute_many(sql, values)
        logger.debug(f"Upserted {len(rows)} rows into {table}")

    def delete(self, table: str, ids: Iterable[str], key: str) -> None:
        id_list = sorted(ids)
        if not id_list:
            return

        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                for batch in chunked(id_list, self.batch_size):
                    placeholders = ", ".join(["%s"] * len(batch))
                    cursor.execute(
                        f"DELETE FROM {quote(table)} WHERE {quote(key)} IN ({placeholders})",
                        tuple(batch),
                    )
                conn.commit()
            finally:
                cursor.close()
        logger.debug(f"Deleted {len(id_list)} rows from {table}")

    def create_mirror_table(self, table: str) -> None:
        """创建镜像表（已存在时不做任何修改）"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(MIRROR_TABLE_DDL.format(table=quote(table)))
                conn.commit()
            finally:
                cursor.close()
        logger.info(f"Mirror table {table} created/verified")

    def test_connection(self) -> bool:
        """测试数据库连接"""
        try:
            self.query("SELECT 1 AS test")
            return True
        except PersistenceError as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
