"""
配置管理模块

配置来源优先级（从低到高）: 默认值 -> JSON 配置文件 -> 环境变量（含 .env）
"""
import json
import os
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from ..errors import ConfigError

MAX_PAGE_SIZE = 500


@dataclass
class FeishuConfig:
    """飞书/Lark 多维表格配置"""
    app_id: str = ""
    app_secret: str = ""
    app_token: str = ""  # 多维表格 base token
    table_id: str = ""
    domain: str = "https://open.larksuite.com"
    filter: Optional[str] = None  # 服务端过滤条件，不满足的记录视为已删除
    page_size: int = MAX_PAGE_SIZE
    timeout: int = 30


@dataclass
class StoreConfig:
    """镜像表存储配置"""
    backend: str = "rest"  # rest | mysql
    table: str = "TimDoSinhVien"
    batch_size: int = 500
    timeout: int = 30

    # rest (Supabase / PostgREST)
    url: str = ""
    service_key: str = ""

    # mysql
    mysql_host: str = ""
    mysql_port: int = 3306
    mysql_user: str = "root"
    mysql_password: str = ""
    mysql_database: str = ""
    mysql_charset: str = "utf8mb4"
    pool_size: int = 5


@dataclass
class SyncConfig:
    """同步配置"""
    time_zone: str = "Asia/Ho_Chi_Minh"
    multi_value_policy: str = "first"  # first | join
    poll_interval: int = 300  # 轮询间隔（秒）
    token_safety_margin: int = 120  # token 提前失效时间（秒）


@dataclass
class RedisConfig:
    """Redis 配置（可选，用于多进程共享 token）"""
    url: Optional[str] = None


@dataclass
class MonitorConfig:
    """监控配置"""
    enable_metrics: bool = True
    alert_webhook: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_json: bool = False  # 标准输出输出 JSON 行，便于 Vercel 等平台采集
    log_max_size: str = "100MB"
    log_backup_count: int = 10


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(value)


# 环境变量 -> (配置段, 字段, 类型)
ENV_MAPPING = {
    "LARK_APP_ID": ("feishu", "app_id", str),
    "LARK_APP_SECRET": ("feishu", "app_secret", str),
    "LARK_BASE_TOKEN": ("feishu", "app_token", str),
    "LARK_TABLE_ID": ("feishu", "table_id", str),
    "LARK_HOST": ("feishu", "domain", str),
    "LARK_FILTER": ("feishu", "filter", str),
    "LARK_PAGE_SIZE": ("feishu", "page_size", int),
    "LARK_TIMEOUT": ("feishu", "timeout", int),
    "STORE_BACKEND": ("store", "backend", str),
    "MIRROR_TABLE": ("store", "table", str),
    "STORE_BATCH_SIZE": ("store", "batch_size", int),
    "SUPABASE_URL": ("store", "url", str),
    "SUPABASE_SERVICE_KEY": ("store", "service_key", str),
    "MYSQL_HOST": ("store", "mysql_host", str),
    "MYSQL_PORT": ("store", "mysql_port", int),
    "MYSQL_USER": ("store", "mysql_user", str),
    "MYSQL_PASSWORD": ("store", "mysql_password", str),
    "MYSQL_DATABASE": ("store", "mysql_database", str),
    "SYNC_TIME_ZONE": ("sync", "time_zone", str),
    "SYNC_MULTI_VALUE_POLICY": ("sync", "multi_value_policy", str),
    "SYNC_POLL_INTERVAL": ("sync", "poll_interval", int),
    "SYNC_TOKEN_SAFETY_MARGIN": ("sync", "token_safety_margin", int),
    "REDIS_URL": ("redis", "url", str),
    "LOG_LEVEL": ("monitor", "log_level", str),
    "LOG_FILE": ("monitor", "log_file", str),
    "LOG_JSON": ("monitor", "log_json", _to_bool),
    "ALERT_WEBHOOK": ("monitor", "alert_webhook", str),
}

SECTIONS = {
    "feishu": FeishuConfig,
    "store": StoreConfig,
    "sync": SyncConfig,
    "redis": RedisConfig,
    "monitor": MonitorConfig,
}


class Config:
    """配置管理器"""

    def __init__(self, config_path: Optional[str] = None,
                 env: Optional[Dict[str, str]] = None,
                 load_env_file: bool = True):
        self.config_path = config_path or self._find_config_file()
        self._env = env
        self._load_env_file = load_env_file
        self._data: Dict[str, Any] = {}

        self.feishu: FeishuConfig = FeishuConfig()
        self.store: StoreConfig = StoreConfig()
        self.sync: SyncConfig = SyncConfig()
        self.redis: RedisConfig = RedisConfig()
        self.monitor: MonitorConfig = MonitorConfig()

        self.load()

    def _find_config_file(self) -> Optional[str]:
        """查找配置文件"""
        search_paths = [
            Path.cwd() / "config.json",
            Path.cwd() / "config" / "config.json",
            Path.home() / ".bitable_mirror_sync" / "config.json",
            Path("/etc/bitable_mirror_sync/config.json")
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        return None

    def load(self) -> None:
        """加载配置文件与环境变量"""
        self._data = {}
        if self.config_path and os.path.exists(self.config_path):
            with open(self.config_path, 'r', encoding='utf-8') as f:
                try:
                    self._data = json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigError(f"Invalid config file {self.config_path}: {e}") from e

        if self._env is None:
            if self._load_env_file:
                load_dotenv()
            env = os.environ
        else:
            env = self._env

        self._apply_env(env)
        self._parse_config()

    def _apply_env(self, env) -> None:
        """环境变量覆盖配置文件"""
        for name, (section, key, cast) in ENV_MAPPING.items():
            raw = env.get(name)
            if raw is None or raw == "":
                continue
            try:
                value = cast(raw)
            except ValueError as e:
                raise ConfigError(f"Environment variable {name} has an invalid value: {raw!r}") from e
            self._data.setdefault(section, {})[key] = value

    def _parse_config(self) -> None:
        """解析配置"""
        for section, cls in SECTIONS.items():
            values = self._data.get(section, {})
            try:
                setattr(self, section, cls(**values))
            except TypeError as e:
                raise ConfigError(f"Invalid '{section}' section: {e}") from e

        self.feishu.page_size = max(1, min(self.feishu.page_size, MAX_PAGE_SIZE))

    def validate(self) -> bool:
        """验证配置是否有效，缺失项一次性全部报告"""
        missing: List[str] = []

        for env_name, value in (
            ("LARK_APP_ID", self.feishu.app_id),
            ("LARK_APP_SECRET", self.feishu.app_secret),
            ("LARK_BASE_TOKEN", self.feishu.app_token),
            ("LARK_TABLE_ID", self.feishu.table_id),
        ):
            if not value:
                missing.append(env_name)

        if self.store.backend == "rest":
            if not self.store.url:
                missing.append("SUPABASE_URL")
            if not self.store.service_key:
                missing.append("SUPABASE_SERVICE_KEY")
        elif self.store.backend == "mysql":
            if not self.store.mysql_host:
                missing.append("MYSQL_HOST")
            if not self.store.mysql_database:
                missing.append("MYSQL_DATABASE")
        else:
            raise ConfigError(f"Unknown store backend: {self.store.backend!r}")

        if not self.store.table:
            missing.append("MIRROR_TABLE")

        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

        try:
            ZoneInfo(self.sync.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown time zone: {self.sync.time_zone!r}") from e

        if self.sync.multi_value_policy not in ("first", "join"):
            raise ConfigError(
                f"Unknown multi value policy: {self.sync.multi_value_policy!r} (expected 'first' or 'join')"
            )

        return True

    def to_dict(self) -> Dict[str, Any]:
        return {section: asdict(getattr(self, section)) for section in SECTIONS}

    def save(self, path: Optional[str] = None) -> str:
        """保存配置（--init 时生成模板）"""
        path = path or self.config_path or str(Path.cwd() / "config.json")
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=4, ensure_ascii=False)
        self.config_path = path
        return path

    def get(self, key: str, default: Any = None) -> Any:
        """获取配置值，如 get('store.table')"""
        section, _, name = key.partition('.')
        obj = getattr(self, section, None) if section in SECTIONS else None
        if obj is None:
            return default
        if not name:
            return obj
        return getattr(obj, name, default)

    def reload(self) -> None:
        """重新加载配置"""
        self.load()
