"""
同步监控指标
"""
import json
import threading
from collections import deque
from datetime import datetime
from typing import Any, Dict, Optional

import requests
from loguru import logger

from ..config.config import MonitorConfig
from ..core.models import SyncResult

SERVICE_NAME = "bitable_mirror_sync"
BOT_HOSTS = ("open.feishu.cn", "open.larksuite.com")


class MetricsCollector:
    """监控指标收集器"""

    def __init__(self, config: MonitorConfig):
        self.config = config
        self._lock = threading.Lock()

        self.counters = {
            'passes_success': 0,
            'passes_failed': 0,
            'rows_synced': 0,
            'rows_deleted': 0,
            'full_wipes': 0,
        }
        self.durations = deque(maxlen=100)
        self.errors = deque(maxlen=100)
        self.last_result: Optional[Dict[str, Any]] = None
        self.start_time = datetime.now()

    def record_pass(self, result: SyncResult, duration_seconds: float) -> None:
        """记录一次成功的同步"""
        full_wipe = result.deleted > 0 and result.synced == 0
        with self._lock:
            self.counters['passes_success'] += 1
            self.counters['rows_synced'] += result.synced
            self.counters['rows_deleted'] += result.deleted
            if full_wipe:
                self.counters['full_wipes'] += 1
            self.durations.append(duration_seconds)
            self.last_result = {
                **result.to_dict(),
                'duration': round(duration_seconds, 3),
                'timestamp': datetime.now().isoformat(),
            }

        if full_wipe:
            self.send_alert(
                'WARNING',
                f'Remote returned no records, mirror wiped ({result.deleted} rows deleted)',
                result.to_dict()
            )

    def record_error(self, error_type: str, error_message: str) -> None:
        """记录一次失败的同步"""
        with self._lock:
            self.counters['passes_failed'] += 1
            self.errors.append({
                'type': error_type,
                'message': error_message,
                'timestamp': datetime.now().isoformat()
            })

        self.send_alert('CRITICAL', f'Sync pass failed: {error_type}', {'error': error_message})

    def get_metrics(self) -> Dict[str, Any]:
        """获取所有指标"""
        with self._lock:
            durations = list(self.durations)
            return {
                'uptime_seconds': (datetime.now() - self.start_time).total_seconds(),
                'counters': dict(self.counters),
                'average_duration': round(sum(durations) / len(durations), 3) if durations else None,
                'last_result': self.last_result,
                'recent_errors': list(self.errors)[-10:],
                'timestamp': datetime.now().isoformat()
            }

    def send_alert(self, alert_type: str, message: str, details: Optional[Dict] = None) -> None:
        """发送告警，告警失败只记录日志，不影响同步结果"""
        if not self.config.alert_webhook:
            return

        if any(host in self.config.alert_webhook for host in BOT_HOSTS):
            # 飞书/Lark 机器人格式
            payload = {
                "msg_type": "text",
                "content": {
                    "text": f"【{alert_type}】{message}\n{json.dumps(details or {}, ensure_ascii=False, indent=2)}"
                }
            }
        else:
            payload = {
                'type': alert_type,
                'message': message,
                'details': details or {},
                'timestamp': datetime.now().isoformat(),
                'service': SERVICE_NAME
            }

        try:
            response = requests.post(self.config.alert_webhook, json=payload, timeout=5)
            if response.status_code != 200:
                logger.error(f"Failed to send alert: {response.text}")
        except requests.RequestException as e:
            logger.error(f"Error sending alert: {e}")

    def export_metrics(self, format: str = 'json') -> str:
        """导出指标"""
        metrics = self.get_metrics()

        if format == 'json':
            return json.dumps(metrics, ensure_ascii=False, indent=2, default=str)
        elif format == 'prometheus':
            lines = [
                '# HELP sync_uptime_seconds Sync service uptime in seconds',
                '# TYPE sync_uptime_seconds gauge',
                f'sync_uptime_seconds {metrics["uptime_seconds"]}',
                '# TYPE sync_passes_total counter',
                f'sync_passes_total{{status="success"}} {metrics["counters"]["passes_success"]}',
                f'sync_passes_total{{status="failed"}} {metrics["counters"]["passes_failed"]}',
                '# TYPE sync_rows_total counter',
                f'sync_rows_total{{action="upsert"}} {metrics["counters"]["rows_synced"]}',
                f'sync_rows_total{{action="delete"}} {metrics["counters"]["rows_deleted"]}',
                f'sync_full_wipes_total {metrics["counters"]["full_wipes"]}',
            ]
            if metrics['average_duration'] is not None:
                lines.append(f'sync_duration_seconds_avg {metrics["average_duration"]}')
            return '\n'.join(lines) + '\n'
        else:
            raise ValueError(f"Unsupported metrics format: {format}")
