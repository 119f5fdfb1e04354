"""Celery tasks for Shopify catalog synchronisation."""

import asyncio
import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import all models to ensure they're registered before creating session
import models  # noqa: F401

from app.celery_app import celery_app
from app.core.config import settings
from app.domains.store.sync import StoreSyncService

logger = logging.getLogger(__name__)


def get_async_session_maker():
    """Create an engine and session factory bound to the task's own event loop.

    Returns:
        Tuple of engine and async session factory
    """
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@celery_app.task(name="app.tasks.sync_tasks.sync_all_stores_task", bind=True)
def sync_all_stores_task(self) -> dict[str, Any]:
    """Refresh the catalog of every active store.

    Scheduled by Celery Beat every ``store_sync_interval_minutes``.
    """
    logger.info(f"🚀 Starting catalog sync for all stores (Task ID: {self.request.id})")

    try:
        result = asyncio.run(_sync_all_stores_async())
        logger.info(f"✅ Catalog sync finished: {result}")
        return result

    except Exception as e:
        logger.error(f"❌ Catalog sync for all stores failed: {str(e)}")
        raise self.retry(exc=e, countdown=60 * 5, max_retries=3)


@celery_app.task(name="app.tasks.sync_tasks.sync_store_task", bind=True)
def sync_store_task(self, store_id: str) -> dict[str, Any]:
    """Refresh one store's catalog on demand."""
    logger.info(f"🚀 Starting catalog sync for store {store_id} (Task ID: {self.request.id})")

    try:
        return asyncio.run(_sync_store_async(UUID(store_id)))

    except Exception as e:
        logger.error(f"❌ Catalog sync for store {store_id} failed: {str(e)}")
        raise self.retry(exc=e, countdown=60, max_retries=3)


async def _sync_all_stores_async() -> dict[str, Any]:
    engine, session_maker = get_async_session_maker()
    try:
        async with session_maker() as session:
            results = await StoreSyncService(session).sync_all_stores()
            return {
                "stores_synced": len(results),
                "products": sum(r.products for r in results),
            }
    finally:
        await engine.dispose()


async def _sync_store_async(store_id: UUID) -> dict[str, Any]:
    engine, session_maker = get_async_session_maker()
    try:
        async with session_maker() as session:
            result = await StoreSyncService(session).sync_store_by_id(store_id)
            return result.model_dump(mode="json")
    finally:
        await engine.dispose()
