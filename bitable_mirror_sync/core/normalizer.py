"""
字段值归一化

多维表格返回的字段值类型并不固定：标量、标量数组、带 text/name/url 的对象数组、
JSON 字符串、多种编码的时间戳。这里的函数全部是纯函数，不做任何 I/O，
遇到无法识别的值一律降级为 None，从不抛异常。
"""
import json
import math
import re
import unicodedata
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, NamedTuple, Optional, Union

from dateutil import parser as date_parser

_WHITESPACE_RE = re.compile(r"\s+")
_YMD_RE = re.compile(r"^\d{4}/\d{2}/\d{2}$")
_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

# 对象类型字段按顺序取第一个非空的子字段
TEXT_KEYS = ("text", "name")
URL_KEYS = ("url", "tmp_url", "link")


class MultiValuePolicy(Enum):
    """多选字段的取值策略

    FIRST_ONLY: 只取第一个值（影子字段只能搜到第一个选项）
    JOIN_COMMA: 所有值用 ", " 连接（影子字段可以搜到所有选项）
    """
    FIRST_ONLY = "first"
    JOIN_COMMA = "join"

    @classmethod
    def parse(cls, value: Union[str, "MultiValuePolicy", None]) -> "MultiValuePolicy":
        if isinstance(value, cls):
            return value
        if not value:
            return cls.FIRST_ONLY
        return cls(str(value).strip().lower())


class TimestampPair(NamedTuple):
    """归一化后的时间：展示用日期字符串 + 毫秒时间戳"""
    time: Optional[str]
    time_raw: Optional[int]


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _from_sequence(values, policy: MultiValuePolicy, picker) -> Optional[str]:
    if not values:
        return None
    if policy is MultiValuePolicy.JOIN_COMMA:
        parts = [p for p in (picker(v, policy) for v in values) if p is not None]
        # 拼接结果可能恰好是 "[...]" 形式，再归一化一次使结果稳定
        return normalize_scalar(", ".join(parts), policy) if parts else None
    return picker(values[0], policy)


def _first_present(obj: dict, keys) -> Any:
    for key in keys:
        value = obj.get(key)
        if value is not None and value != "":
            return value
    return None


def normalize_scalar(value: Any,
                     policy: MultiValuePolicy = MultiValuePolicy.FIRST_ONLY) -> Optional[str]:
    """将任意字段值归一化为字符串或 None

    结果对自身幂等: normalize_scalar(normalize_scalar(x)) == normalize_scalar(x)
    """
    if value is None:
        return None

    if isinstance(value, (list, tuple)):
        return _from_sequence(value, policy, normalize_scalar)

    if isinstance(value, dict):
        picked = _first_present(value, TEXT_KEYS + URL_KEYS)
        return normalize_scalar(picked, policy) if picked is not None else None

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, float) and not math.isfinite(value):
        return None

    text = _collapse(str(value))
    if not text:
        return None

    # "[...]" 形式的 JSON 数组字符串，解析后取值
    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
        except ValueError:
            return text
        if isinstance(parsed, list):
            return normalize_scalar(parsed, policy)

    return text


def normalize_image(value: Any,
                    policy: MultiValuePolicy = MultiValuePolicy.FIRST_ONLY) -> Optional[str]:
    """图片字段: 附件对象优先取 url，其次 tmp_url/link，最后按普通字段处理"""
    if isinstance(value, (list, tuple)):
        return _from_sequence(value, policy, normalize_image)

    if isinstance(value, dict):
        url = _first_present(value, URL_KEYS)
        if url is not None:
            return normalize_scalar(url, policy)

    return normalize_scalar(value, policy)


def normalize_search_text(text: Optional[str]) -> Optional[str]:
    """生成搜索用的影子字段: 小写、去掉声调、đ -> d、合并空白"""
    if text is None:
        return None

    text = str(text).lower().replace("đ", "d").replace("Đ", "D")
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _collapse(stripped)
    return stripped or None


def _to_millis(value: Any, tz: tzinfo) -> Optional[int]:
    """尝试把单个值转换为毫秒时间戳，失败返回 None"""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (list, tuple, dict)):
        value = normalize_scalar(value)
        if value is None:
            return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value) if value > 0 else None

    text = str(value).strip()
    if not text:
        return None

    if _NUMERIC_RE.match(text):
        number = float(text)
        return int(number) if math.isfinite(number) and number > 0 else None

    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError):
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    try:
        millis = int(parsed.timestamp() * 1000)
    except (OverflowError, OSError, ValueError):
        return None
    return millis if millis > 0 else None


def _ymd_midnight_millis(text: str, tz: tzinfo) -> Optional[int]:
    try:
        day = datetime.strptime(text, "%Y/%m/%d").replace(tzinfo=tz)
    except ValueError:
        return None
    return int(day.timestamp() * 1000)


def format_ymd(millis: int, tz: tzinfo) -> Optional[str]:
    """毫秒时间戳 -> 目标时区的 YYYY/MM/DD"""
    try:
        moment = datetime.fromtimestamp(millis / 1000, tz=timezone.utc).astimezone(tz)
    except (OverflowError, OSError, ValueError):
        return None
    return f"{moment.year:04d}/{moment.month:02d}/{moment.day:02d}"


def _normalize_one(value: Any, tz: tzinfo) -> TimestampPair:
    if isinstance(value, str) and _YMD_RE.match(value.strip()):
        text = value.strip()
        millis = _ymd_midnight_millis(text, tz)
        if millis is not None:
            # 已经是目标格式，原样保留，避免二次换算导致日期漂移
            return TimestampPair(text, millis)

    millis = _to_millis(value, tz)
    if millis is None:
        return TimestampPair(None, None)

    rendered = format_ymd(millis, tz)
    if rendered is None:
        return TimestampPair(None, None)
    return TimestampPair(rendered, millis)


def normalize_timestamp(value: Any, fallback: Any = None,
                        tz: Optional[tzinfo] = None) -> TimestampPair:
    """时间字段归一化，主值无效时使用 fallback

    日期按固定目标时区渲染，与运行环境的本地时区无关。
    """
    tz = tz or timezone.utc
    result = _normalize_one(value, tz)
    if result.time_raw is None:
        result = _normalize_one(fallback, tz)
    return result
