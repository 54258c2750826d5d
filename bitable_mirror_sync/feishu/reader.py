"""
多维表格记录读取
"""
import json
from typing import Any, Dict, List, Optional

import lark_oapi as lark
from lark_oapi.api.auth.v3 import (
    InternalTenantAccessTokenRequest,
    InternalTenantAccessTokenRequestBody,
)
from lark_oapi.api.bitable.v1 import ListAppTableRecordRequest
from loguru import logger

from ..core.models import RemoteRecord
from ..errors import AuthError, FetchError
from .token_cache import MemoryTokenCache, TokenCache, TokenEntry, now_millis

MAX_PAGE_SIZE = 500  # 飞书 API 单页最大记录数
DEFAULT_EXPIRE = 3600


class BitableReader:
    """多维表格读取器

    fetch_all 一次性拉取整张表（可选服务端过滤）。配置了过滤条件时，
    不满足条件的记录会被当作已删除处理。
    """

    def __init__(self, app_id: str, app_secret: str,
                 app_token: str, table_id: str,
                 domain: str = lark.LARK_DOMAIN,
                 token_cache: Optional[TokenCache] = None,
                 page_size: int = MAX_PAGE_SIZE,
                 safety_margin: int = 120,
                 timeout: Optional[int] = None,
                 client: Optional[lark.Client] = None):
        self.app_id = app_id
        self.app_secret = app_secret
        self.app_token = app_token
        self.table_id = table_id
        self.token_cache = token_cache or MemoryTokenCache()
        self.page_size = max(1, min(page_size, MAX_PAGE_SIZE))
        self.safety_margin = safety_margin

        if client is None:
            builder = lark.Client.builder() \
                .app_id(app_id) \
                .app_secret(app_secret) \
                .domain(domain) \
                .enable_set_token(True) \
                .log_level(lark.LogLevel.ERROR)
            if timeout:
                builder = builder.timeout(timeout)
            client = builder.build()
        self.client = client

    @property
    def _cache_key(self) -> str:
        return self.app_id

    def get_tenant_access_token(self) -> str:
        """获取 tenant_access_token，优先使用缓存"""
        cached = self.token_cache.get(self._cache_key)
        if cached is not None:
            return cached.token

        request = InternalTenantAccessTokenRequest.builder() \
            .request_body(InternalTenantAccessTokenRequestBody.builder()
                .app_id(self.app_id)
                .app_secret(self.app_secret)
                .build()) \
            .build()

        requested_at = now_millis()
        try:
            response = self.client.auth.v3.tenant_access_token.internal(request)
        except Exception as e:
            raise AuthError(f"Lark auth request failed: {e}") from e

        if not response.success():
            raise AuthError(f"Lark auth error: code={response.code}, msg={response.msg}")

        # auth v3 的响应体没有生成 data 模型，token 直接在原始 JSON 里
        try:
            content = json.loads(response.raw.content)
        except (AttributeError, TypeError, ValueError) as e:
            raise AuthError(f"Lark auth returned an unreadable body: {e}") from e

        token = content.get("tenant_access_token")
        if not token:
            raise AuthError(f"Lark auth error: no tenant_access_token, msg={content.get('msg')}")

        expire = content.get("expire") or content.get("expire_in") or DEFAULT_EXPIRE
        ttl = max(0, int(expire) - self.safety_margin)
        self.token_cache.set(self._cache_key, TokenEntry(token, requested_at + ttl * 1000))
        logger.debug(f"Obtained tenant_access_token, valid for {ttl}s")
        return token

    def _list_page(self, page_token: Optional[str], filter_expr: Optional[str]):
        builder = ListAppTableRecordRequest.builder() \
            .app_token(self.app_token) \
            .table_id(self.table_id) \
            .page_size(self.page_size)
        if page_token:
            builder = builder.page_token(page_token)
        if filter_expr:
            builder = builder.filter(filter_expr)

        option = lark.RequestOption.builder() \
            .tenant_access_token(self.get_tenant_access_token()) \
            .build()

        try:
            response = self.client.bitable.v1.app_table_record.list(builder.build(), option)
        except Exception as e:
            raise FetchError(f"Bitable list request failed: {e}") from e

        if not response.success():
            logger.error(f"List records failed: app={self.app_token}, table={self.table_id}, "
                         f"code={response.code}, msg={response.msg}")
            raise FetchError(f"Bitable list error: code={response.code}, msg={response.msg}")

        return response.data

    def fetch_all(self, filter_expr: Optional[str] = None) -> List[RemoteRecord]:
        """分页读取所有记录，任何一页失败都会丢弃已读取的数据并抛出 FetchError"""
        records: List[RemoteRecord] = []
        page_token: Optional[str] = None
        pages = 0

        while True:
            data = self._list_page(page_token, filter_expr)
            pages += 1

            items = (data.items if data else None) or []
            for item in items:
                fields: Dict[str, Any] = dict(item.fields) if item.fields else {}
                records.append(RemoteRecord(record_id=item.record_id, fields=fields))

            if not (data and data.has_more):
                break

            page_token = data.page_token
            if not page_token:
                raise FetchError("Bitable reported has_more without a page_token")

        logger.info(f"Fetched {len(records)} records in {pages} page(s) "
                    f"from {self.app_token}/{self.table_id}"
                    + (f" with filter {filter_expr!r}" if filter_expr else ""))
        return records

    def test_connection(self) -> bool:
        """测试连接"""
        try:
            self.get_tenant_access_token()
            return True
        except AuthError as e:
            logger.error(f"Lark connection test failed: {e}")
            return False
