"""
记录映射器，把多维表格记录转换为镜像表的固定行结构
"""
import math
from datetime import tzinfo
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from zoneinfo import ZoneInfo

from loguru import logger

from .models import RemoteRecord, SHADOW_COLUMNS
from .normalizer import (
    MultiValuePolicy,
    normalize_image,
    normalize_scalar,
    normalize_search_text,
    normalize_timestamp,
)

# 每个镜像列可接受的飞书字段名，按优先级排列，取第一个有值的
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "name": ("TieuDe", "Tiêu đề", "TenDo", "Tên đồ", "name", "Name"),
    "description": ("MoTa", "Mô tả", "description", "Description"),
    "image": ("HinhAnhURL", "HinhAnh", "Hình ảnh", "image", "Image"),
    "type": ("LoaiTin", "Loại tin", "type", "Type"),
    "group": ("Group", "Nhom", "Nhóm", "Truong", "Trường", "group"),
    "docType": ("LoaiDo", "Loại đồ", "docType", "DocType"),
    "khuVuc": ("KhuVuc", "Khu vực", "khuVuc", "Area"),
    "time": ("ThoiGian", "Thời gian", "time", "Time"),
    "time_fallback": ("NgayDang", "Ngày đăng", "NgayTao", "Ngày tạo", "CreatedTime"),
    "isPinned": ("Ghim", "isPinned", "Pinned", "Pin"),
    "latitude": ("Latitude", "Lat", "latitude", "ViDo", "Vĩ độ"),
    "longitude": ("Longitude", "Lng", "Long", "longitude", "KinhDo", "Kinh độ"),
    "status": ("TrangThai", "Trạng thái", "status", "Status"),
    "email": ("EmailNguoiDang", "Email người đăng", "Email", "email"),
    "lienHe": ("LienHe", "Liên hệ", "SoDienThoai", "lienHe"),
    "linkFacebook": ("LinkFacebook", "Link Facebook", "Facebook", "linkFacebook"),
}

TYPE_FOUND = "found"
TYPE_LOST = "lost"
DEFAULT_STATUS = "Chờ duyệt"

# 信息类型的自由文本 -> 两值枚举；未命中 found 短语的一律视为 lost
TYPE_LABELS: Dict[str, Sequence[str]] = {
    TYPE_FOUND: ("nhặt được", "nhat duoc", "found", "picked up"),
    TYPE_LOST: ("mất", "mat", "lost", "tìm đồ", "tim do"),
}

_TRUTHY = {"true", "1", "yes", "y", "x", "co", "checked", "on"}


def _is_present(value: Any) -> bool:
    return value is not None and value != "" and value != [] and value != {}


def pick_field(fields: Dict[str, Any], aliases: Iterable[str]) -> Any:
    """按别名顺序取第一个有值的字段"""
    for alias in aliases:
        value = fields.get(alias)
        if _is_present(value):
            return value
    return None


def resolve_type(label: Optional[str]) -> str:
    if label is None:
        return TYPE_FOUND

    normalized = normalize_search_text(label) or ""
    for phrase in TYPE_LABELS[TYPE_FOUND]:
        if normalize_search_text(phrase) in normalized:
            return TYPE_FOUND
    return TYPE_LOST


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    text = normalize_search_text(normalize_scalar(value))
    return text in _TRUTHY


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = normalize_scalar(value)
        if text is None:
            return None
        try:
            number = float(text.replace(",", "."))
        except ValueError:
            return None
    return number if math.isfinite(number) else None


class RecordMapper:
    """记录映射器，纯函数式转换，字段缺失或格式异常时降级为 None/默认值"""

    def __init__(self,
                 multi_value_policy: Union[str, MultiValuePolicy] = MultiValuePolicy.FIRST_ONLY,
                 time_zone: Union[str, tzinfo] = "Asia/Ho_Chi_Minh",
                 aliases: Optional[Dict[str, Sequence[str]]] = None):
        self.policy = MultiValuePolicy.parse(multi_value_policy)
        self.tz = ZoneInfo(time_zone) if isinstance(time_zone, str) else time_zone
        self.aliases = dict(FIELD_ALIASES)
        if aliases:
            self.aliases.update(aliases)

    def _text(self, fields: Dict[str, Any], column: str) -> Optional[str]:
        return normalize_scalar(pick_field(fields, self.aliases[column]), self.policy)

    def map_record(self, record: RemoteRecord) -> Dict[str, Any]:
        """多维表格记录 -> 镜像表行"""
        fields = record.fields or {}

        stamp = normalize_timestamp(
            pick_field(fields, self.aliases["time"]),
            pick_field(fields, self.aliases["time_fallback"]),
            self.tz,
        )

        row: Dict[str, Any] = {
            "record_id": record.record_id,
            "name": self._text(fields, "name"),
            "description": self._text(fields, "description"),
            "image": normalize_image(pick_field(fields, self.aliases["image"]), self.policy),
            # 类型只看第一个选项
            "type": resolve_type(normalize_scalar(pick_field(fields, self.aliases["type"]))),
            "group": self._text(fields, "group"),
            "docType": self._text(fields, "docType"),
            "khuVuc": self._text(fields, "khuVuc"),
            "time": stamp.time,
            "timeRaw": stamp.time_raw,
            "isPinned": any(_is_truthy(fields.get(a)) for a in self.aliases["isPinned"]),
            "latitude": _to_float(pick_field(fields, self.aliases["latitude"])),
            "longitude": _to_float(pick_field(fields, self.aliases["longitude"])),
            "status": self._text(fields, "status") or DEFAULT_STATUS,
            "email": self._text(fields, "email"),
            "lienHe": self._text(fields, "lienHe"),
            "linkFacebook": self._text(fields, "linkFacebook"),
        }

        for shadow, source in SHADOW_COLUMNS.items():
            row[shadow] = normalize_search_text(row[source])

        return row

    def map_records(self, records: Iterable[RemoteRecord]) -> List[Dict[str, Any]]:
        rows = [self.map_record(r) for r in records]
        logger.debug(f"Mapped {len(rows)} records")
        return rows
