"""
PostgREST（Supabase）镜像表存储
"""
import json
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests
from loguru import logger

from ..errors import PersistenceError
from .store import TableStore, chunked


class RestTableStore(TableStore):
    """基于 PostgREST 的表存储"""

    def __init__(self, url: str, service_key: str,
                 batch_size: int = 500, page_size: int = 1000,
                 timeout: int = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.batch_size = batch_size
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        })

    def _request(self, method: str, table: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{table}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise PersistenceError(f"{method} {table} failed: {e}") from e

        if not response.ok:
            logger.error(f"Supabase {method} {table} returned {response.status_code}: {response.text}")
            raise PersistenceError(
                f"{method} {table} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response

    def select(self, table: str, columns: Sequence[str],
               limit: Optional[int] = None) -> List[Dict[str, Any]]:
        # PostgREST 对单次返回行数有上限，这里按 offset 翻页直到取完
        rows: List[Dict[str, Any]] = []
        offset = 0
        select = ",".join(columns) if columns else "*"

        while True:
            page_size = self.page_size if limit is None else min(self.page_size, limit - len(rows))
            params = {"select": select, "limit": page_size, "offset": offset}
            if columns:
                params["order"] = f"{columns[0]}.asc"

            response = self._request("GET", table, params=params)
            try:
                page = response.json()
            except ValueError as e:
                raise PersistenceError(f"GET {table} returned a non-JSON body: {e}",
                                       status_code=response.status_code) from e
            rows.extend(page)
            offset += len(page)

            if len(page) < page_size or (limit is not None and len(rows) >= limit):
                break

        logger.debug(f"Selected {len(rows)} rows from {table}")
        return rows

    def upsert(self, table: str, rows: Sequence[Dict[str, Any]], key: str) -> None:
        if not rows:
            return
        for batch in chunked(list(rows), self.batch_size):
            self._request(
                "POST", table,
                params={"on_conflict": key},
                headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
                data=json.dumps(list(batch), ensure_ascii=False).encode("utf-8"),
            )
        logger.debug(f"Upserted {len(rows)} rows into {table}")

    def delete(self, table: str, ids: Iterable[str], key: str) -> None:
        id_list = sorted(ids)
        if not id_list:
            return
        for batch in chunked(id_list, self.batch_size):
            quoted = ",".join(json.dumps(str(i), ensure_ascii=False) for i in batch)
            self._request("DELETE", table, params={key: f"in.({quoted})"})
        logger.debug(f"Deleted {len(id_list)} rows from {table}")

    def test_connection(self) -> bool:
        try:
            self._request("GET", "")
            return True
        except PersistenceError as e:
            logger.error(f"Supabase connection test failed: {e}")
            return False

    def close(self) -> None:
        self.session.close()
