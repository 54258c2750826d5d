"""同步核心模块"""

from .models import RemoteRecord, SyncResult, ReconcilePlan
from .normalizer import (
    MultiValuePolicy,
    TimestampPair,
    normalize_image,
    normalize_scalar,
    normalize_search_text,
    normalize_timestamp,
)
from .record_mapper import RecordMapper
from .reconciler import MirrorReconciler
from .sync_service import SyncService, create_service

__all__ = [
    "RemoteRecord",
    "SyncResult",
    "ReconcilePlan",
    "MultiValuePolicy",
    "TimestampPair",
    "normalize_image",
    "normalize_scalar",
    "normalize_search_text",
    "normalize_timestamp",
    "RecordMapper",
    "MirrorReconciler",
    "SyncService",
    "create_service",
]
