"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from enrollproof.core.config import AppSettings
from enrollproof.core.protocols import ICacheBackend, IFileStore, IRecordStore
from enrollproof.persistence.dynamodb_backend import DynamoDBRecordStore
from enrollproof.persistence.memory_backend import MemoryCacheBackend, MemoryRecordStore
from enrollproof.persistence.redis_backend import RedisCacheBackend
from enrollproof.persistence.s3_backend import S3FileStore


def create_persistence(
    settings: AppSettings | None = None,
) -> tuple[IRecordStore, ICacheBackend, IFileStore | None]:
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (record_store, cache, file_store). ``file_store`` is None
        when report archiving is disabled.
    """
    if settings is None:
        settings = AppSettings()

    if settings.store.backend == "dynamodb":
        record_store: IRecordStore = DynamoDBRecordStore(
            table_suffix=settings.store.table_suffix,
            region=settings.store.region,
            endpoint_url=settings.store.endpoint_url,
        )
    else:
        record_store = MemoryRecordStore()

    if settings.redis.enabled:
        cache: ICacheBackend = RedisCacheBackend(
            host=settings.redis.host,
            port=settings.redis.port,
            db=settings.redis.db,
        )
    else:
        cache = MemoryCacheBackend()

    file_store = None
    if settings.s3.enabled:
        file_store = S3FileStore(
            bucket=settings.s3.bucket,
            region=settings.s3.region,
            endpoint_url=settings.s3.endpoint_url,
        )

    return record_store, cache, file_store
