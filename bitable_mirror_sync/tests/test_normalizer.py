"""
字段归一化测试
"""
import re
import unittest
from datetime import timezone
from zoneinfo import ZoneInfo

from bitable_mirror_sync.core.normalizer import (
    MultiValuePolicy,
    TimestampPair,
    normalize_image,
    normalize_scalar,
    normalize_search_text,
    normalize_timestamp,
)

VN = ZoneInfo("Asia/Ho_Chi_Minh")


class TestNormalizeScalar(unittest.TestCase):
    """标量归一化测试"""

    def test_empty_values(self):
        self.assertIsNone(normalize_scalar(None))
        self.assertIsNone(normalize_scalar(""))
        self.assertIsNone(normalize_scalar("   "))
        self.assertIsNone(normalize_scalar([]))
        self.assertIsNone(normalize_scalar({}))

    def test_whitespace_collapsed(self):
        self.assertEqual(normalize_scalar("  Thẻ   sinh\n viên "), "Thẻ sinh viên")

    def test_array_picks_first(self):
        self.assertEqual(normalize_scalar(["USSH", "HCMUS"]), "USSH")
        self.assertEqual(normalize_scalar([{"text": "Ví"}, {"text": "Thẻ"}]), "Ví")

    def test_array_join_policy(self):
        value = ["Thẻ sinh viên", {"text": "Ví"}, None, ""]
        self.assertEqual(normalize_scalar(value, MultiValuePolicy.JOIN_COMMA), "Thẻ sinh viên, Ví")

    def test_object_sub_fields(self):
        self.assertEqual(normalize_scalar({"text": "a", "name": "b"}), "a")
        self.assertEqual(normalize_scalar({"name": "b"}), "b")
        self.assertEqual(normalize_scalar({"url": "https://x/y.png"}), "https://x/y.png")
        self.assertEqual(normalize_scalar({"link": "https://x", "other": 1}), "https://x")
        self.assertIsNone(normalize_scalar({"id": "ou_123"}))

    def test_json_array_string(self):
        self.assertEqual(normalize_scalar('["USSH", "HCMUS"]'), "USSH")
        self.assertEqual(normalize_scalar('[{"text": "Khu A"}]'), "Khu A")
        self.assertIsNone(normalize_scalar("[]"))

    def test_json_array_parse_failure_keeps_string(self):
        self.assertEqual(normalize_scalar("[not json]"), "[not json]")

    def test_numbers_and_booleans(self):
        self.assertEqual(normalize_scalar(10.5), "10.5")
        self.assertEqual(normalize_scalar(42), "42")
        self.assertEqual(normalize_scalar(True), "true")
        self.assertIsNone(normalize_scalar(float("nan")))

    def test_idempotent(self):
        samples = [
            None, "", "  a  b ", ["x", "y"], [{"text": " t "}], {"name": "n"},
            '["a\\nb"]', '[["nested"]]', "[x]", 12, 3.5, False, '["[\\"a\\"]"]',
            [[], "second"], {"text": ["deep", "er"]}, ["[1", "2]"], ["[", "]"],
        ]
        for policy in MultiValuePolicy:
            for sample in samples:
                once = normalize_scalar(sample, policy)
                self.assertEqual(normalize_scalar(once, policy), once, msg=repr(sample))

    def test_join_resolving_to_json_list(self):
        once = normalize_scalar(["[1", "2]"], MultiValuePolicy.JOIN_COMMA)
        self.assertEqual(once, "1, 2")
        self.assertEqual(normalize_scalar(["[", "]"], MultiValuePolicy.JOIN_COMMA), "[, ]")


class TestNormalizeImage(unittest.TestCase):
    """图片字段测试"""

    def test_attachment_prefers_url(self):
        attachment = [{"name": "photo.jpg", "url": "https://open/x", "tmp_url": "https://tmp/x"}]
        self.assertEqual(normalize_image(attachment), "https://open/x")

    def test_tmp_url_fallback(self):
        self.assertEqual(normalize_image({"name": "a.png", "tmp_url": "https://tmp/a"}), "https://tmp/a")

    def test_plain_string(self):
        self.assertEqual(normalize_image(" https://img/1.png "), "https://img/1.png")
        self.assertIsNone(normalize_image(None))


class TestNormalizeSearchText(unittest.TestCase):
    """影子字段测试"""

    def test_vietnamese(self):
        self.assertEqual(normalize_search_text("Đã Duyệt"), "da duyet")
        self.assertEqual(normalize_search_text("Thẻ Sinh Viên"), "the sinh vien")
        self.assertEqual(normalize_search_text("  Khu   vực  Đông "), "khu vuc dong")

    def test_none_and_empty(self):
        self.assertIsNone(normalize_search_text(None))
        self.assertIsNone(normalize_search_text("   "))


class TestNormalizeTimestamp(unittest.TestCase):
    """时间字段测试"""

    def test_epoch_millis(self):
        result = normalize_timestamp(1700000000000, None)
        self.assertRegex(result.time, r"^\d{4}/\d{2}/\d{2}$")
        self.assertEqual(result.time_raw, 1700000000000)

    def test_fixed_time_zone(self):
        # 2023-11-14T22:13:20Z 在越南时间已经是 11 月 15 日
        self.assertEqual(normalize_timestamp(1700000000000, None, VN).time, "2023/11/15")
        self.assertEqual(normalize_timestamp(1700000000000, None, timezone.utc).time, "2023/11/14")

    def test_numeric_string(self):
        self.assertEqual(normalize_timestamp("1700000000000", None, VN),
                         TimestampPair("2023/11/15", 1700000000000))

    def test_date_string(self):
        result = normalize_timestamp("2025-11-14 08:30", None, VN)
        self.assertEqual(result.time, "2025/11/14")
        self.assertIsInstance(result.time_raw, int)

    def test_ymd_passthrough(self):
        result = normalize_timestamp("2025/01/02", None, VN)
        self.assertEqual(result.time, "2025/01/02")
        self.assertEqual(normalize_timestamp(result.time_raw, None, VN).time, "2025/01/02")

    def test_fallback(self):
        result = normalize_timestamp("not a date", 1700000000000, VN)
        self.assertEqual(result.time_raw, 1700000000000)

    def test_invalid(self):
        for value in (None, "", "garbage", -5, 0, True, float("nan"), []):
            self.assertEqual(normalize_timestamp(value, None, VN), TimestampPair(None, None),
                             msg=repr(value))

    def test_array_value(self):
        self.assertEqual(normalize_timestamp([1700000000000], None, VN).time_raw, 1700000000000)


if __name__ == '__main__':
    unittest.main()
