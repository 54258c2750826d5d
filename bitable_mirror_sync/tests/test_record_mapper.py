"""
记录映射器测试
"""
import unittest

from bitable_mirror_sync.core.models import CANONICAL_COLUMNS, RemoteRecord
from bitable_mirror_sync.core.normalizer import MultiValuePolicy
from bitable_mirror_sync.core.record_mapper import (
    DEFAULT_STATUS,
    RecordMapper,
    pick_field,
    resolve_type,
)


class TestRecordMapper(unittest.TestCase):
    """字段映射测试"""

    def setUp(self):
        self.mapper = RecordMapper(MultiValuePolicy.FIRST_ONLY, "Asia/Ho_Chi_Minh")

    def test_empty_record_is_total(self):
        row = self.mapper.map_record(RemoteRecord("rec1", {}))

        self.assertEqual(row["record_id"], "rec1")
        for column in ("name", "description", "image", "group", "docType", "khuVuc",
                       "time", "timeRaw", "email", "lienHe", "linkFacebook"):
            self.assertIsNone(row[column], msg=column)
        self.assertEqual(row["type"], "found")
        self.assertIs(row["isPinned"], False)
        self.assertIsNone(row["latitude"])
        self.assertIsNone(row["longitude"])
        self.assertEqual(row["status"], DEFAULT_STATUS)
        self.assertEqual(set(row), set(CANONICAL_COLUMNS))

    def test_full_record(self):
        record = RemoteRecord("recABC", {
            "TieuDe": "  Mất   ví da ",
            "MoTa": "Ví màu nâu",
            "HinhAnhURL": [{"name": "vi.jpg", "url": "https://img/vi.jpg"}],
            "LoaiTin": "Tìm đồ",
            "Group": ["Thẻ Sinh Viên", "USSH"],
            "LoaiDo": [{"text": "Ví"}, {"text": "Thẻ"}],
            "KhuVuc": "Khu Đông",
            "ThoiGian": 1700000000000,
            "Ghim": True,
            "Latitude": "10.762622",
            "Longitude": 106.660172,
            "TrangThai": "Đã duyệt",
            "EmailNguoiDang": "a@b.vn",
        })

        row = self.mapper.map_record(record)

        self.assertEqual(row["name"], "Mất ví da")
        self.assertEqual(row["_name"], "mat vi da")
        self.assertEqual(row["image"], "https://img/vi.jpg")
        self.assertEqual(row["type"], "lost")
        self.assertEqual(row["group"], "Thẻ Sinh Viên")
        self.assertEqual(row["_group"], "the sinh vien")
        self.assertEqual(row["docType"], "Ví")
        self.assertEqual(row["_khuVuc"], "khu dong")
        self.assertEqual(row["time"], "2023/11/15")
        self.assertEqual(row["timeRaw"], 1700000000000)
        self.assertIs(row["isPinned"], True)
        self.assertAlmostEqual(row["latitude"], 10.762622)
        self.assertAlmostEqual(row["longitude"], 106.660172)
        self.assertEqual(row["status"], "Đã duyệt")
        self.assertEqual(row["email"], "a@b.vn")

    def test_join_policy_changes_shadow_fields(self):
        mapper = RecordMapper(MultiValuePolicy.JOIN_COMMA, "Asia/Ho_Chi_Minh")
        row = mapper.map_record(RemoteRecord("rec1", {"LoaiDo": ["Thẻ sinh viên", "Ví"]}))

        self.assertEqual(row["docType"], "Thẻ sinh viên, Ví")
        self.assertEqual(row["_docType"], "the sinh vien, vi")

    def test_alias_priority(self):
        fields = {"name": "english", "Tiêu đề": "accented", "TieuDe": ""}
        row = self.mapper.map_record(RemoteRecord("rec1", fields))
        self.assertEqual(row["name"], "accented")

        self.assertEqual(pick_field({"b": 1, "a": 2}, ("a", "b")), 2)
        self.assertIsNone(pick_field({"a": []}, ("a",)))

    def test_time_fallback(self):
        row = self.mapper.map_record(RemoteRecord("rec1", {
            "ThoiGian": "???", "NgayDang": "2025/03/04",
        }))
        self.assertEqual(row["time"], "2025/03/04")
        self.assertIsInstance(row["timeRaw"], int)

    def test_pin_aliases(self):
        self.assertTrue(self.mapper.map_record(RemoteRecord("r", {"isPinned": "true"}))["isPinned"])
        self.assertTrue(self.mapper.map_record(RemoteRecord("r", {"Ghim": False, "Pinned": 1}))["isPinned"])
        self.assertFalse(self.mapper.map_record(RemoteRecord("r", {"Ghim": "false"}))["isPinned"])

    def test_bad_coordinates(self):
        row = self.mapper.map_record(RemoteRecord("r", {"Latitude": "abc", "Longitude": "NaN"}))
        self.assertIsNone(row["latitude"])
        self.assertIsNone(row["longitude"])

    def test_shadow_fields_follow_display_fields(self):
        row = self.mapper.map_record(RemoteRecord("r", {"Group": "Thẻ Sinh Viên", "KhuVuc": None}))
        self.assertEqual(row["_group"], "the sinh vien")
        self.assertIsNone(row["_khuVuc"])


class TestResolveType(unittest.TestCase):
    """信息类型映射测试"""

    def test_found_phrases(self):
        self.assertEqual(resolve_type("Nhặt được"), "found")
        self.assertEqual(resolve_type("ĐỒ NHẶT ĐƯỢC"), "found")
        self.assertEqual(resolve_type("found"), "found")

    def test_default_lost(self):
        self.assertEqual(resolve_type("Mất đồ"), "lost")
        self.assertEqual(resolve_type("something else"), "lost")

    def test_absent(self):
        self.assertEqual(resolve_type(None), "found")


if __name__ == '__main__':
    unittest.main()
