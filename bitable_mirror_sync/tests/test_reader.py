"""
多维表格读取测试
"""
import json
import unittest
from unittest.mock import MagicMock, Mock, patch

from bitable_mirror_sync.errors import AuthError, FetchError
from bitable_mirror_sync.feishu.reader import BitableReader
from bitable_mirror_sync.feishu.token_cache import (
    MemoryTokenCache,
    RedisTokenCache,
    TokenEntry,
    now_millis,
)


def auth_response(code=0, token="t-123", expire=7200, msg="ok"):
    response = Mock()
    response.success.return_value = code == 0
    response.code = code
    response.msg = msg
    body = {"code": code, "msg": msg, "expire": expire}
    if token:
        body["tenant_access_token"] = token
    response.raw.content = json.dumps(body).encode("utf-8")
    return response


def page_response(items, has_more=False, page_token=None, code=0):
    response = Mock()
    response.success.return_value = code == 0
    response.code = code
    response.msg = "ok" if code == 0 else "boom"
    response.data.items = [Mock(record_id=rid, fields=fields) for rid, fields in items]
    response.data.has_more = has_more
    response.data.page_token = page_token
    return response


class TestBitableReader(unittest.TestCase):
    """读取器测试"""

    def setUp(self):
        self.client = MagicMock()
        self.client.auth.v3.tenant_access_token.internal.return_value = auth_response()
        self.cache = MemoryTokenCache()
        self.reader = BitableReader("cli_app", "secret", "base", "tbl",
                                    token_cache=self.cache, client=self.client)

    def test_paginates_until_exhausted(self):
        self.client.bitable.v1.app_table_record.list.side_effect = [
            page_response([("rec1", {"TieuDe": "A"}), ("rec2", {})], has_more=True, page_token="p2"),
            page_response([("rec3", None)]),
        ]

        records = self.reader.fetch_all()

        self.assertEqual([r.record_id for r in records], ["rec1", "rec2", "rec3"])
        self.assertEqual(records[0].fields, {"TieuDe": "A"})
        self.assertEqual(records[2].fields, {})

        calls = self.client.bitable.v1.app_table_record.list.call_args_list
        self.assertEqual(len(calls), 2)
        self.assertIsNone(calls[0][0][0].page_token)
        self.assertEqual(calls[1][0][0].page_token, "p2")
        self.assertEqual(calls[0][0][0].page_size, 500)

    def test_filter_forwarded(self):
        self.client.bitable.v1.app_table_record.list.return_value = page_response([])

        self.reader.fetch_all('CurrentValue.[TrangThai]="Đã duyệt"')

        request = self.client.bitable.v1.app_table_record.list.call_args[0][0]
        self.assertEqual(request.filter, 'CurrentValue.[TrangThai]="Đã duyệt"')

    def test_token_cached_across_pages(self):
        self.client.bitable.v1.app_table_record.list.side_effect = [
            page_response([("rec1", {})], has_more=True, page_token="p2"),
            page_response([("rec2", {})]),
        ]

        self.reader.fetch_all()

        self.client.auth.v3.tenant_access_token.internal.assert_called_once()
        option = self.client.bitable.v1.app_table_record.list.call_args[0][1]
        self.assertEqual(option.tenant_access_token, "t-123")

    def test_token_expiry_uses_safety_margin(self):
        before = now_millis()
        self.reader.get_tenant_access_token()
        entry = self.cache.get("cli_app")
        self.assertGreaterEqual(entry.expires_at_ms, before + (7200 - 120) * 1000)
        self.assertLessEqual(entry.expires_at_ms, now_millis() + (7200 - 120) * 1000)

    def test_expired_token_refreshed(self):
        self.cache.set("cli_app", TokenEntry("old", now_millis() - 1))
        self.assertEqual(self.reader.get_tenant_access_token(), "t-123")

    def test_auth_error(self):
        self.client.auth.v3.tenant_access_token.internal.return_value = \
            auth_response(code=10003, token=None, msg="invalid param")

        with self.assertRaises(AuthError):
            self.reader.fetch_all()
        self.assertFalse(self.reader.test_connection())

    def test_auth_transport_error(self):
        self.client.auth.v3.tenant_access_token.internal.side_effect = ConnectionError("down")
        with self.assertRaises(AuthError):
            self.reader.get_tenant_access_token()

    def test_page_error_discards_partial(self):
        self.client.bitable.v1.app_table_record.list.side_effect = [
            page_response([("rec1", {})], has_more=True, page_token="p2"),
            page_response([], code=1254002),
        ]

        with self.assertRaises(FetchError):
            self.reader.fetch_all()

    def test_has_more_without_token(self):
        self.client.bitable.v1.app_table_record.list.return_value = \
            page_response([("rec1", {})], has_more=True, page_token=None)

        with self.assertRaises(FetchError):
            self.reader.fetch_all()

    def test_page_size_capped(self):
        reader = BitableReader("a", "b", "c", "d", page_size=5000, client=self.client)
        self.assertEqual(reader.page_size, 500)


class TestTokenCache(unittest.TestCase):
    """token 缓存测试"""

    def test_memory_cache(self):
        cache = MemoryTokenCache()
        self.assertIsNone(cache.get("k"))

        cache.set("k", TokenEntry("tok", now_millis() + 60000))
        self.assertEqual(cache.get("k").token, "tok")

        cache.invalidate("k")
        self.assertIsNone(cache.get("k"))

    def test_memory_cache_expired(self):
        cache = MemoryTokenCache()
        cache.set("k", TokenEntry("tok", now_millis() - 1))
        self.assertIsNone(cache.get("k"))

    def test_redis_cache(self):
        client = Mock()
        cache = RedisTokenCache(client)
        expires = now_millis() + 60000

        cache.set("k", TokenEntry("tok", expires))
        key, payload = client.set.call_args[0]
        self.assertEqual(key, "bitable_token:k")
        self.assertLessEqual(client.set.call_args[1]["ex"], 60)

        client.get.return_value = payload
        self.assertEqual(cache.get("k"), TokenEntry("tok", expires))

    def test_redis_cache_malformed(self):
        client = Mock()
        client.get.return_value = "not json"
        cache = RedisTokenCache(client)

        self.assertIsNone(cache.get("k"))
        client.delete.assert_called_once_with("bitable_token:k")

    def test_redis_outage_is_cache_miss(self):
        import redis

        client = Mock()
        client.get.side_effect = redis.ConnectionError("redis down")
        client.set.side_effect = redis.ConnectionError("redis down")
        lark_client = MagicMock()
        lark_client.auth.v3.tenant_access_token.internal.return_value = auth_response(token="t-fresh")
        reader = BitableReader("cli_app", "secret", "base", "tbl",
                               token_cache=RedisTokenCache(client), client=lark_client)

        self.assertEqual(reader.get_tenant_access_token(), "t-fresh")
        self.assertTrue(reader.test_connection())

    @patch("redis.Redis.from_url")
    def test_build_falls_back_to_memory(self, from_url):
        import redis
        from bitable_mirror_sync.feishu.token_cache import build_token_cache

        from_url.return_value.ping.side_effect = redis.ConnectionError("refused")
        self.assertIsInstance(build_token_cache("redis://localhost:6379/0"), MemoryTokenCache)
        self.assertIsInstance(build_token_cache(None), MemoryTokenCache)


if __name__ == '__main__':
    unittest.main()
