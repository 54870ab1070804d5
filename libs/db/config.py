import time
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


class TenantEngineRegistry:
    """
    Lazily creates one async engine per tenant database URL.

    ``resolve_url`` maps a tenant id (club code) to its database URL and
    raises ``LookupError`` for unknown tenants.
    """

    def __init__(self, resolve_url: Callable[[str], str]):
        self._resolve_url = resolve_url
        self._engines: dict[str, AsyncEngine] = {}

    def get(self, tenant_id: str) -> AsyncEngine:
        url = self._resolve_url(tenant_id)
        engine = self._engines.get(url)
        if engine is None:
            engine = self._create(url)
            self._engines[url] = engine
            logger.info(
                "Created engine for tenant",
                extra={"extra_fields": {"tenant_id": tenant_id}},
            )
        return engine

    def _create(self, url: str) -> AsyncEngine:
        settings = get_settings()
        return create_async_engine(
            url,
            echo=False,
            pool_pre_ping=True,  # Test connections before using
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )

    async def ping(self, tenant_id: str) -> float:
        """
        Open and release one connection for ``tenant_id``.

        Returns the elapsed milliseconds. Raises ``LookupError`` for an
        unconfigured tenant and ``SQLAlchemyError``/``OSError`` when the
        database cannot be reached.
        """
        start = time.perf_counter()
        async with self.get(tenant_id).connect():
            pass
        return round((time.perf_counter() - start) * 1000, 2)

    async def dispose_all(self) -> None:
        for engine in self._engines.values():
            await engine.dispose()
        self._engines.clear()


def require_url(url: Optional[str], setting_name: str) -> str:
    if not url:
        raise LookupError(f"{setting_name} is not configured")
    return url
